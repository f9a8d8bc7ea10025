import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "backend"))

from sqlalchemy import text
from redis import RedisError

from slotswap.database import SessionLocal
from slotswap.models import Slots, SwapRequests, SwapStatus
from slotswap.redis_client import redis_client


def main():
    db = SessionLocal()
    try:
        print("DB OK:", db.execute(text("SELECT 1")).scalar())
        print("Slots:", db.query(Slots).count())
        pending = db.query(SwapRequests).filter(SwapRequests.status == SwapStatus.PENDING.value).count()
        print("Pending swap requests:", pending)
    finally:
        db.close()

    try:
        print("Redis OK:", redis_client.ping())
    except RedisError as e:
        print("Redis unreachable:", e)


if __name__ == "__main__":
    main()
