"""
並發控制工具

遊戲狀態在記憶體中只有一個 writer（RoundEngine），這裡只處理 snapshot
寫入資料庫時的鎖定：用 SELECT ... FOR UPDATE 鎖住 snapshot row，
避免兩個 process 不小心指向同一個資料庫時互相覆蓋一半的寫入。
"""
from sqlalchemy.orm import Query, Session

from models import GameSnapshot


def with_snapshot_lock(db: Session, snapshot_id: int = 1) -> Query:
    """
    鎖定 snapshot row（行級鎖）

    範例：
        row = with_snapshot_lock(db).first()
        if row is None:
            row = GameSnapshot(id=1, ...)
            db.add(row)
        row.payload = payload
        db.commit()

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - SQLite 沒有行級鎖，FOR UPDATE 會被忽略（單一 process 下無影響）
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(GameSnapshot).filter(
        GameSnapshot.id == snapshot_id
    ).with_for_update(nowait=False)
