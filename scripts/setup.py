#!/usr/bin/env python3
"""Setup script for the tour marketplace API."""

import asyncio
import logging
import sys
from pathlib import Path
from uuid import uuid4

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from sqlalchemy import func, select  # noqa: E402

from marketplace.core.database import async_session_factory, close_db, init_db  # noqa: E402
from marketplace.core.dependencies import AuthContext, Role, create_access_token  # noqa: E402
from marketplace.models import *  # noqa: E402,F403 - Import all models to ensure they're registered
from marketplace.models.tour import Tour  # noqa: E402
from marketplace.schemas.tour import CreateTourRequest  # noqa: E402
from marketplace.services.approval_service import CATEGORY, DESTINATION, ApprovalService  # noqa: E402
from marketplace.services.tour_service import TourService  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def setup_database():
    """Create the database schema."""
    logger.info("Setting up database...")
    await init_db()
    logger.info("Database setup completed successfully!")


async def create_sample_data():
    """Create a sample seller tour and an approved category and destination."""
    seller = AuthContext(user_id=uuid4(), role=Role.SELLER)
    admin = AuthContext(user_id=uuid4(), role=Role.ADMIN)

    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing_tours = await db.scalar(select(func.count(Tour.id)))
        if existing_tours:
            logger.info("Sample data already exists, skipping...")
            return None

        tour = await TourService(db).create_tour(
            CreateTourRequest(
                title="Northern Lights Adventure",
                code="NLA-001",
                description="Experience the magical Aurora Borealis in Iceland with expert guides",
                max_size=12,
                tour_status="published",
                price_amount=29999,  # $299.99
                price_currency="USD",
            ),
            seller,
        )

        categories = ApprovalService(db, CATEGORY)
        category = await categories.submit(
            {"name": "Aurora Hunting", "description": "Night tours chasing the northern lights"},
            seller,
        )
        await categories.approve(category.id, admin)

        destinations = ApprovalService(db, DESTINATION)
        destination = await destinations.submit(
            {"name": "Reykjavik", "country": "Iceland", "region": "Capital Region", "city": "Reykjavik"},
            seller,
        )
        await destinations.approve(destination.id, admin)

    logger.info("Sample data created successfully!", extra={"tour_id": str(tour.id)})
    return seller, admin


async def main():
    """Main setup function."""
    logger.info("Starting tour marketplace API setup...")

    await setup_database()
    identities = await create_sample_data()
    await close_db()

    if identities:
        seller, admin = identities
        logger.info("Seller token: %s", create_access_token(seller.user_id, seller.role))
        logger.info("Admin token: %s", create_access_token(admin.user_id, admin.role))

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn marketplace.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
