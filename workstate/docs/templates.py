"""
Seed documents written into <project>/docs/ when a project is registered.

The same text is the baseline for the template divergence check, so editing a
template here changes when phases are considered complete.
"""

import logging
from pathlib import Path

from workstate.lib.constants import REQUIREMENTS_DOC, SCOPE_DOC, STRUCTURE_DOC
from workstate.storage.atomic import AtomicFileStore

logger = logging.getLogger(__name__)

REQUIREMENTS_TEMPLATE = """# 要件定義

## 機能要件

1. 要件1
   - 説明: 機能の詳細説明
   - 優先度: 高

2. 要件2
   - 説明: 機能の詳細説明
   - 優先度: 中

## 非機能要件

1. パフォーマンス
   - 説明: レスポンス時間や処理能力に関する要件
   - 優先度: 中

2. セキュリティ
   - 説明: セキュリティに関する要件
   - 優先度: 高

## ユーザーストーリー

- ユーザーとして、[機能]を使いたい。それによって[目的]を達成できる。
"""

SCOPE_TEMPLATE = """# 実装スコープ

## 完了

（まだ完了した項目はありません）

## 進行中

（実装中の項目がここに表示されます）

## 未着手

1. ユーザー認証機能
   - 説明: ログイン・登録機能の実装
   - 優先度: 高
   - 関連ファイル: 未定

2. データ表示機能
   - 説明: メインデータの一覧表示
   - 優先度: 高
   - 関連ファイル: 未定
"""

STRUCTURE_TEMPLATE = """# ディレクトリ構造

```
project/
├── frontend/
│   ├── public/
│   │   ├── index.html
│   │   └── assets/
│   └── src/
│       ├── components/
│       ├── pages/
│       ├── styles/
│       └── utils/
├── backend/
│   ├── controllers/
│   ├── routes/
│   ├── services/
│   └── models/
```
"""

INITIAL_DOCUMENTS = {
    REQUIREMENTS_DOC: REQUIREMENTS_TEMPLATE,
    SCOPE_DOC: SCOPE_TEMPLATE,
    STRUCTURE_DOC: STRUCTURE_TEMPLATE,
}


def create_initial_documents(docs_dir: Path, file_store: AtomicFileStore) -> list[Path]:
    """Write any missing seed documents into docs_dir. Existing files are left alone.

    Returns the paths that were created.
    """
    created = []
    for filename, template in INITIAL_DOCUMENTS.items():
        path = Path(docs_dir) / filename
        if path.exists():
            continue
        file_store.write_text(path, template, backup=False)
        created.append(path)
    if created:
        logger.info(f"Created {len(created)} seed documents in {docs_dir}")
    return created
