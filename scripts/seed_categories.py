#!/usr/bin/env python3
"""
Script to seed the category tree with a nested demo hierarchy.
Skips seeding when categories already exist, then prints tree statistics.
"""

import asyncio

import structlog
from sqlalchemy import func, select

from app.core.database import AsyncSessionLocal, engine, init_db
from app.core.logging import configure_logging
from app.models.category import Category
from app.services.category import CategoryService
from app.utils.validation import slugify_category_name

logger = structlog.get_logger(__name__)

CATEGORY_TREE = [
    {
        "name": "Beauty",
        "description": "Beauty, grooming and wellness services",
        "children": [
            {
                "name": "Hair Services",
                "description": "Cuts, colour and styling",
                "children": [
                    {
                        "name": "Hair Cutting",
                        "description": "Haircuts for all ages",
                        "children": [
                            {"name": "Men's Haircuts"},
                            {"name": "Women's Haircuts"},
                            {"name": "Kids Haircuts"},
                        ],
                    },
                    {
                        "name": "Hair Coloring",
                        "children": [{"name": "Highlights"}, {"name": "Balayage"}],
                    },
                ],
            },
            {
                "name": "Massage",
                "description": "Relaxation and therapeutic massage",
                "children": [
                    {"name": "Hot Stone Massage"},
                    {"name": "Deep Tissue Massage"},
                    {"name": "Swedish Massage"},
                ],
            },
        ],
    },
    {
        "name": "Health Care",
        "description": "Medical and healthcare services",
        "children": [
            {
                "name": "Doctors",
                "description": "Medical doctors and specialists",
                "children": [
                    {
                        "name": "General Physician",
                        "children": [
                            {
                                "name": "Family Medicine",
                                "children": [
                                    {"name": "Pediatric Care"},
                                    {"name": "Geriatric Care"},
                                    {"name": "Preventive Care"},
                                ],
                            },
                        ],
                    },
                ],
            },
        ],
    },
    {
        "name": "Home Services",
        "description": "Repairs and maintenance around the house",
        "children": [
            {"name": "Plumbing"},
            {"name": "Electrical"},
            {"name": "Cleaning", "children": [{"name": "Deep Cleaning"}]},
        ],
    },
]


async def seed_categories(db, nodes, parent_id=None) -> int:
    """Insert ``nodes`` breadth-first under ``parent_id``; returns the count."""
    created = 0
    queue = [(parent_id, nodes)]
    while queue:
        current_parent_id, level = queue.pop(0)
        for sort_order, node in enumerate(level):
            category = Category(
                name=node["name"],
                slug=slugify_category_name(node["name"]),
                description=node.get("description"),
                parent_id=current_parent_id,
                sort_order=sort_order,
            )
            db.add(category)
            await db.flush()
            created += 1
            if node.get("children"):
                queue.append((category.id, node["children"]))
    return created


async def main():
    """Seed the category tree if it is empty."""
    configure_logging()
    await init_db()

    async with AsyncSessionLocal() as db:
        existing = (await db.execute(select(func.count(Category.id)))).scalar_one()
        if existing > 0:
            logger.info("Categories already exist, skipping seeding", count=existing)
        else:
            created = await seed_categories(db, CATEGORY_TREE)
            await db.commit()
            logger.info("Seeded category tree", created=created)

        stats = await CategoryService.get_tree_stats(db)
        print(f"Total categories: {stats.total_categories}")
        print(f"Root categories:  {stats.root_categories}")
        print(f"Max depth:        {stats.max_depth} levels")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
