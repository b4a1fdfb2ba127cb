from app.models.billing.currency_models import Currency
from app.core.db import AsyncSessionLocal
from sqlalchemy import select
import asyncio
import os

async def seed_base_currency():
    code = os.getenv("BASE_CURRENCY", "USD").upper()
    async with AsyncSessionLocal() as session:
        exists = await session.scalar(select(Currency.id).where(Currency.is_base.is_(True)))
        if exists:
            print("Base currency already present, nothing to do.")
            return

        session.add(
            Currency(
                code=code,
                name=os.getenv("BASE_CURRENCY_NAME", code),
                decimal_places=int(os.getenv("BASE_CURRENCY_DECIMALS", 2)),
                is_base=True,
            )
        )
        await session.commit()
        print(f"Base currency {code} created!")

asyncio.run(seed_base_currency())
