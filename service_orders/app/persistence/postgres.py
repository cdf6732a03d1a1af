"""
PostgreSQL persistence layer for the Order Service.
"""

import asyncio
from datetime import timezone
from typing import Dict, List, Optional

import asyncpg

from shared.errors import OrderNotFoundError, PersistenceError
from shared.observability import Observability
from ..models import Delivery, Item, Order, Payment

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

_ORDER_COLUMNS = """
    o.order_uid, o.track_number, o.entry, o.locale, o.internal_signature, o.customer_id,
    o.delivery_service, o.shardkey, o.sm_id, o.date_created, o.oof_shard,
    d.name AS d_name, d.phone AS d_phone, d.zip AS d_zip, d.city AS d_city,
    d.address AS d_address, d.region AS d_region, d.email AS d_email,
    p.transaction AS p_transaction, p.request_id AS p_request_id, p.currency AS p_currency,
    p.provider AS p_provider, p.amount AS p_amount, p.payment_dt AS p_payment_dt,
    p.bank AS p_bank, p.delivery_cost AS p_delivery_cost, p.goods_total AS p_goods_total,
    p.custom_fee AS p_custom_fee
"""


class PostgreSQLOrderStore:
    """PostgreSQL-backed order store. Each ``save`` runs in one transaction."""

    def __init__(self, dsn: str, observability: Optional[Observability] = None):
        self.dsn = dsn
        self.observability = observability or Observability("orders")
        self.logger = self.observability.get_logger("persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL order store started")

        except STORE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL order store", error=str(e))
            raise PersistenceError("Failed to connect to PostgreSQL", details={"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL order store stopped")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise PersistenceError("Order store not started")
        return self.pool

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    order_uid VARCHAR(50) PRIMARY KEY,
                    track_number VARCHAR(30) NOT NULL,
                    entry TEXT NOT NULL,
                    locale VARCHAR(2) NOT NULL,
                    internal_signature TEXT NOT NULL DEFAULT '',
                    customer_id TEXT NOT NULL,
                    delivery_service TEXT NOT NULL,
                    shardkey TEXT NOT NULL,
                    sm_id BIGINT NOT NULL,
                    date_created TIMESTAMP WITH TIME ZONE NOT NULL,
                    oof_shard TEXT NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS deliveries (
                    order_uid VARCHAR(50) PRIMARY KEY REFERENCES orders(order_uid) ON DELETE CASCADE,
                    name VARCHAR(100) NOT NULL,
                    phone VARCHAR(20) NOT NULL,
                    zip TEXT NOT NULL,
                    city TEXT NOT NULL,
                    address TEXT NOT NULL,
                    region TEXT NOT NULL,
                    email TEXT NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS payments (
                    order_uid VARCHAR(50) PRIMARY KEY REFERENCES orders(order_uid) ON DELETE CASCADE,
                    transaction TEXT NOT NULL,
                    request_id TEXT NOT NULL DEFAULT '',
                    currency VARCHAR(3) NOT NULL,
                    provider TEXT NOT NULL,
                    amount BIGINT NOT NULL,
                    payment_dt BIGINT NOT NULL,
                    bank TEXT NOT NULL,
                    delivery_cost BIGINT NOT NULL,
                    goods_total BIGINT NOT NULL,
                    custom_fee BIGINT NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    order_uid VARCHAR(50) NOT NULL REFERENCES orders(order_uid) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    chrt_id BIGINT NOT NULL,
                    track_number TEXT NOT NULL,
                    price BIGINT NOT NULL,
                    rid TEXT NOT NULL,
                    name TEXT NOT NULL,
                    sale SMALLINT NOT NULL,
                    size TEXT NOT NULL,
                    total_price BIGINT NOT NULL,
                    nm_id BIGINT NOT NULL,
                    brand TEXT NOT NULL,
                    status BIGINT NOT NULL,
                    PRIMARY KEY (order_uid, position)
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_orders_date_created ON orders(date_created DESC);
            """)

    async def save(self, order: Order) -> None:
        """Upsert an order with its delivery, payment and items in one transaction."""
        pool = self._require_pool()
        metrics = self.observability.metrics
        date_created = order.date_created
        if date_created is not None and date_created.tzinfo is None:
            date_created = date_created.replace(tzinfo=timezone.utc)

        try:
            with metrics.time_operation("db", "save_order"):
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        await conn.execute("""
                            INSERT INTO orders (
                                order_uid, track_number, entry, locale, internal_signature, customer_id,
                                delivery_service, shardkey, sm_id, date_created, oof_shard
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                            ON CONFLICT (order_uid) DO UPDATE SET
                                track_number = EXCLUDED.track_number,
                                entry = EXCLUDED.entry,
                                locale = EXCLUDED.locale,
                                internal_signature = EXCLUDED.internal_signature,
                                customer_id = EXCLUDED.customer_id,
                                delivery_service = EXCLUDED.delivery_service,
                                shardkey = EXCLUDED.shardkey,
                                sm_id = EXCLUDED.sm_id,
                                date_created = EXCLUDED.date_created,
                                oof_shard = EXCLUDED.oof_shard
                        """,
                            order.order_uid, order.track_number, order.entry, order.locale,
                            order.internal_signature, order.customer_id, order.delivery_service,
                            order.shardkey, order.sm_id, date_created, order.oof_shard
                        )

                        d = order.delivery
                        await conn.execute("""
                            INSERT INTO deliveries (order_uid, name, phone, zip, city, address, region, email)
                            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                            ON CONFLICT (order_uid) DO UPDATE SET
                                name = EXCLUDED.name,
                                phone = EXCLUDED.phone,
                                zip = EXCLUDED.zip,
                                city = EXCLUDED.city,
                                address = EXCLUDED.address,
                                region = EXCLUDED.region,
                                email = EXCLUDED.email
                        """,
                            order.order_uid, d.name, d.phone, d.zip, d.city, d.address, d.region, d.email
                        )

                        p = order.payment
                        await conn.execute("""
                            INSERT INTO payments (
                                order_uid, transaction, request_id, currency, provider, amount,
                                payment_dt, bank, delivery_cost, goods_total, custom_fee
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                            ON CONFLICT (order_uid) DO UPDATE SET
                                transaction = EXCLUDED.transaction,
                                request_id = EXCLUDED.request_id,
                                currency = EXCLUDED.currency,
                                provider = EXCLUDED.provider,
                                amount = EXCLUDED.amount,
                                payment_dt = EXCLUDED.payment_dt,
                                bank = EXCLUDED.bank,
                                delivery_cost = EXCLUDED.delivery_cost,
                                goods_total = EXCLUDED.goods_total,
                                custom_fee = EXCLUDED.custom_fee
                        """,
                            order.order_uid, p.transaction, p.request_id, p.currency, p.provider,
                            p.amount, p.payment_dt, p.bank, p.delivery_cost, p.goods_total, p.custom_fee
                        )

                        # Items are replaced wholesale so a re-delivered order converges
                        await conn.execute("DELETE FROM items WHERE order_uid = $1", order.order_uid)
                        await conn.executemany("""
                            INSERT INTO items (
                                order_uid, position, chrt_id, track_number, price, rid, name,
                                sale, size, total_price, nm_id, brand, status
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                        """, [
                            (
                                order.order_uid, position, item.chrt_id, item.track_number, item.price,
                                item.rid, item.name, item.sale, item.size, item.total_price,
                                item.nm_id, item.brand, item.status
                            )
                            for position, item in enumerate(order.items)
                        ])

        except STORE_ERRORS as e:
            metrics.record_db_operation("save", "error")
            self.logger.error("Error saving order", order_uid=order.order_uid, error=str(e))
            raise PersistenceError(
                f"Failed to save order {order.order_uid}",
                details={"order_uid": order.order_uid, "error": str(e)}
            ) from e

        metrics.record_db_operation("save", "success")
        self.logger.debug("Order saved", order_uid=order.order_uid, items=len(order.items))

    async def get_by_uid(self, order_uid: str) -> Order:
        """Load one order. Raises ``OrderNotFoundError`` when absent."""
        orders = await self._load(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders o
            JOIN deliveries d ON d.order_uid = o.order_uid
            JOIN payments p ON p.order_uid = o.order_uid
            WHERE o.order_uid = $1
            """,
            order_uid,
            operation="get",
        )
        if not orders:
            self.observability.metrics.record_db_operation("get", "not_found")
            raise OrderNotFoundError(order_uid)
        return orders[0]

    async def get_recent(self, limit: int) -> Dict[str, Order]:
        """Load up to ``limit`` orders with the newest ``date_created``."""
        if limit <= 0:
            return {}
        orders = await self._load(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders o
            JOIN deliveries d ON d.order_uid = o.order_uid
            JOIN payments p ON p.order_uid = o.order_uid
            ORDER BY o.date_created DESC
            LIMIT $1
            """,
            limit,
            operation="get_recent",
        )
        return {order.order_uid: order for order in orders}

    async def _load(self, query: str, *args, operation: str) -> List[Order]:
        pool = self._require_pool()
        metrics = self.observability.metrics
        try:
            with metrics.time_operation("db", operation):
                async with pool.acquire() as conn:
                    async with conn.transaction(readonly=True):
                        rows = await conn.fetch(query, *args)
                        if not rows:
                            return []
                        uids = [row["order_uid"] for row in rows]
                        item_rows = await conn.fetch("""
                            SELECT order_uid, chrt_id, track_number, price, rid, name, sale, size,
                                   total_price, nm_id, brand, status
                            FROM items
                            WHERE order_uid = ANY($1::varchar[])
                            ORDER BY order_uid, position
                        """, uids)

        except STORE_ERRORS as e:
            metrics.record_db_operation(operation, "error")
            self.logger.error("Error loading orders", operation=operation, error=str(e))
            raise PersistenceError(
                "Failed to load orders",
                details={"operation": operation, "error": str(e)}
            ) from e

        items: Dict[str, List[Item]] = {}
        for row in item_rows:
            items.setdefault(row["order_uid"], []).append(self._row_to_item(row))

        metrics.record_db_operation(operation, "success")
        return [self._row_to_order(row, items.get(row["order_uid"], [])) for row in rows]

    def _row_to_item(self, row) -> Item:
        return Item(
            chrt_id=row["chrt_id"],
            track_number=row["track_number"],
            price=row["price"],
            rid=row["rid"],
            name=row["name"],
            sale=row["sale"],
            size=row["size"],
            total_price=row["total_price"],
            nm_id=row["nm_id"],
            brand=row["brand"],
            status=row["status"],
        )

    def _row_to_order(self, row, items: List[Item]) -> Order:
        """Convert a joined order row to an Order."""
        return Order(
            order_uid=row["order_uid"],
            track_number=row["track_number"],
            entry=row["entry"],
            delivery=Delivery(
                name=row["d_name"],
                phone=row["d_phone"],
                zip=row["d_zip"],
                city=row["d_city"],
                address=row["d_address"],
                region=row["d_region"],
                email=row["d_email"],
            ),
            payment=Payment(
                transaction=row["p_transaction"],
                request_id=row["p_request_id"],
                currency=row["p_currency"],
                provider=row["p_provider"],
                amount=row["p_amount"],
                payment_dt=row["p_payment_dt"],
                bank=row["p_bank"],
                delivery_cost=row["p_delivery_cost"],
                goods_total=row["p_goods_total"],
                custom_fee=row["p_custom_fee"],
            ),
            items=items,
            locale=row["locale"],
            internal_signature=row["internal_signature"],
            customer_id=row["customer_id"],
            delivery_service=row["delivery_service"],
            shardkey=row["shardkey"],
            sm_id=row["sm_id"],
            date_created=row["date_created"],
            oof_shard=row["oof_shard"],
        )
