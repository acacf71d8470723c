"""CreditProductRepository: ORM-backed catalogue of purchasable credit bundles."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_ledger.domain.models import CreditProduct
from src.rs_ledger.infrastructure.db_models import CreditProductORM


def _orm_to_product(orm: CreditProductORM) -> CreditProduct:
    return CreditProduct(
        id=orm.id,
        name=orm.name,
        credits=orm.credits,
        price_cents=orm.price_cents,
        biody=orm.biody,
        active=orm.active,
        created_at=orm.created_at,
    )


class CreditProductRepository:
    async def create_product(
        self,
        db: AsyncSession,
        name: str,
        credits: int,
        price_cents: int,
        biody: bool,
        active: bool,
    ) -> CreditProduct:
        orm = CreditProductORM(
            name=name,
            credits=credits,
            price_cents=price_cents,
            biody=biody,
            active=active,
        )
        db.add(orm)
        await db.flush()
        return _orm_to_product(orm)

    async def list_products(
        self, db: AsyncSession, active: bool | None, biody: bool | None
    ) -> list[CreditProduct]:
        stmt = select(CreditProductORM).order_by(
            CreditProductORM.active.desc(), CreditProductORM.price_cents
        )
        if active is not None:
            stmt = stmt.where(CreditProductORM.active == active)
        if biody is not None:
            stmt = stmt.where(CreditProductORM.biody == biody)
        result = await db.execute(stmt)
        return [_orm_to_product(orm) for orm in result.scalars().all()]

    async def get_product(self, db: AsyncSession, product_id: str) -> CreditProduct | None:
        result = await db.execute(
            select(CreditProductORM).where(CreditProductORM.id == product_id)
        )
        orm = result.scalar_one_or_none()
        return _orm_to_product(orm) if orm else None

    async def set_active(
        self, db: AsyncSession, product_id: str, active: bool
    ) -> CreditProduct | None:
        result = await db.execute(
            select(CreditProductORM).where(CreditProductORM.id == product_id)
        )
        orm = result.scalar_one_or_none()
        if orm is None:
            return None
        orm.active = active
        await db.flush()
        return _orm_to_product(orm)
