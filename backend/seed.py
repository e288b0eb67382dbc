"""Create the conversation tables. Pass --reset to drop and recreate them."""

from __future__ import annotations

import argparse
import asyncio

from src.database import engine
from src.models.orm import Base


async def main(reset: bool) -> None:
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--reset", action="store_true", help="Drop existing tables first")
    asyncio.run(main(parser.parse_args().reset))
