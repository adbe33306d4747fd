#!/usr/bin/env python3
"""Walk through the six query patterns against an in-memory food collection.

Each pattern prints the query shape, the pages it produced and the cost they
were charged, which makes the price difference between point reads,
in-partition queries and fan-outs visible.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random

from docquery import (
    Container,
    ContainerProperties,
    Filter,
    FilterOp,
    Predicate,
    QueryOptions,
)

FOOD_GROUPS = [
    "Sweets",
    "Breakfast Cereals",
    "Fats and Oils",
    "Beef Products",
    "Dairy and Egg Products",
    "Snacks",
    "Beverages",
    "Vegetables and Vegetable Products",
]

MANUFACTURERS = ["Kellogg Co.", "General Mills Inc.", "The Hershey Company", None]


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the six query patterns against sample data")
    p.add_argument("documents", nargs="?", type=int, default=400)
    p.add_argument("--partitions", type=int, default=4)
    p.add_argument("--capacity", type=int, default=None)
    p.add_argument("--page-size", type=int, default=100)
    p.add_argument("--seed", type=int, default=7)
    p.add_argument("--verbose", action="store_true")
    return p.parse_args()


def make_food(index: int, rng: random.Random) -> dict:
    group = FOOD_GROUPS[index % len(FOOD_GROUPS)]
    item = {
        "id": f"{index:05d}",
        "foodGroup": group,
        "description": f"{group} sample {index}",
        "version": 1 if index % 3 else 2,
        "isFromSurvey": index % 2 == 0,
        "servings": [{"amount": rng.randint(1, 4), "description": "cup"}],
    }
    manufacturer = MANUFACTURERS[index % len(MANUFACTURERS)]
    if manufacturer is not None:
        item["manufacturerName"] = manufacturer
    return item


async def seed(container: Container, count: int, rng: random.Random) -> None:
    for index in range(count):
        await container.create_item(make_food(index, rng))
    await container.upsert_item(
        {
            "id": "19293",
            "foodGroup": "Sweets",
            "description": "Candies, butterscotch",
            "manufacturerName": "The Hershey Company",
            "version": 1,
            "servings": [{"amount": 1, "description": "piece"}],
        }
    )
    await container.upsert_item(
        {
            "id": "08065",
            "foodGroup": "Breakfast Cereals",
            "description": "Cereals ready-to-eat, rice flakes",
            "version": 1,
            "servings": [{"amount": 1, "description": "cup"}],
        }
    )


async def run_query(
    container: Container,
    title: str,
    predicate: Predicate,
    options: QueryOptions | None = None,
) -> None:
    print("=" * 72)
    print(title)
    print("-" * 72)
    async with container.query_items(predicate, options=options) as feed:
        async for page in feed:
            print(
                f"  partition {page.partition_id or '-':>4} | "
                f"{len(page):>4} docs | {page.cost:>8.2f} RU"
            )
        print(f"  total: {feed.page_count} pages, {feed.total_cost:.2f} RU")


async def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    rng = random.Random(args.seed)

    container = Container(
        ContainerProperties(
            id="food",
            partition_key_path="/foodGroup",
            partition_count=args.partitions,
            partition_capacity=args.capacity,
        )
    )
    await seed(container, args.documents, rng)
    partitions = len(container.partition_map.partition_ids())
    print(f"Seeded {args.documents + 2} documents across {partitions} partitions")

    # 1. full scan
    await run_query(container, "1) Full scan", Predicate())

    # 2. point reads
    print("=" * 72)
    print("2) Point reads")
    print("-" * 72)
    for item_id, group in (("19293", "Sweets"), ("08065", "Breakfast Cereals")):
        response = await container.read_item(item_id, group)
        description = response.document.value("description") if response.document else None
        print(f"  {item_id} / {group:<18} | {description} | {response.cost:.2f} RU")

    # 3. in-partition query
    await run_query(
        container,
        "3) In-partition: foodGroup = 'Fats and Oils'",
        Predicate(partition_key="Fats and Oils"),
    )
    await run_query(
        container,
        "3) In-partition with AND: foodGroup = 'Fats and Oils' AND isFromSurvey = false",
        Predicate(
            filters=(
                Filter(field="foodGroup", value="Fats and Oils"),
                Filter(field="isFromSurvey", value=False),
            )
        ),
    )

    # 4. in-partition with projection
    projection = ("description", "manufacturerName", "servings")
    await run_query(
        container,
        "4) In-partition projection: Sweets, all projected fields defined",
        Predicate(
            partition_key="Sweets",
            filters=tuple(Filter(field=name, op=FilterOp.DEFINED) for name in projection),
            projection=projection,
        ),
    )

    # 5. fan-out
    await run_query(
        container,
        "5) Fan-out: version = 1",
        Predicate(filters=(Filter(field="version", value=1),)),
    )

    # 6. parallel paginated fan-out
    await run_query(
        container,
        "6) Parallel fan-out: manufacturerName != null",
        Predicate(
            filters=(Filter(field="manufacturerName", op=FilterOp.NE, value=None),),
            projection=("id", "description", "manufacturerName", "servings"),
        ),
        QueryOptions(max_concurrency=-1, max_item_count=args.page_size),
    )
    print("=" * 72)


if __name__ == "__main__":
    asyncio.run(main())
