"""Seed an admin account and a few sample courses.

Safe to run repeatedly: an existing admin email or course slug is skipped.

Usage:
    python -m scripts.seed
    python -m scripts.seed --email admin@example.com --password password123
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from src.auth.permissions import UserRole
from src.auth.schemas import SignupRequest
from src.auth.service import AuthService
from src.auth.validators import validate_email, validate_password
from src.config.settings import get_settings
from src.core.database.async_cassandra import (
    init_async_cassandra,
    shutdown_async_cassandra,
)
from src.courses.models import generate_slug
from src.courses.schemas import CreateCourseRequest
from src.courses.service import CourseService


logger = structlog.get_logger(__name__)


SAMPLE_COURSES = [
    {
        "title": "Python Fundamentals",
        "description": "Variables, control flow, functions and modules, from zero.",
        "price": "0",
        "category": "programming",
        "level": "beginner",
        "isPublished": True,
        "modules": [
            {
                "title": "Getting Started",
                "lessons": [
                    {"title": "Installing Python", "durationSeconds": 420, "isFree": True},
                    {"title": "Your First Script", "durationSeconds": 600},
                ],
            },
            {
                "title": "Core Language",
                "lessons": [
                    {"title": "Control Flow", "durationSeconds": 780},
                    {"title": "Functions", "durationSeconds": 900},
                    {
                        "title": "Cheat Sheet",
                        "contentType": "text",
                        "content": "if / for / while / def / return",
                    },
                ],
            },
        ],
    },
    {
        "title": "Data Analysis with Pandas",
        "description": "Load, clean, reshape and summarise tabular data with pandas.",
        "price": "79.90",
        "category": "data",
        "level": "intermediate",
        "isPublished": True,
        "modules": [
            {
                "title": "DataFrames",
                "lessons": [
                    {"title": "Series and DataFrames", "durationSeconds": 840, "isFree": True},
                    {"title": "Indexing", "durationSeconds": 960},
                ],
            },
            {
                "title": "Aggregation",
                "lessons": [
                    {"title": "Group By", "durationSeconds": 1020},
                    {"title": "Pivot Tables", "durationSeconds": 720},
                ],
            },
        ],
    },
    {
        "title": "Distributed Systems Design",
        "description": "Replication, consensus and partitioning for working engineers.",
        "price": "149.00",
        "category": "architecture",
        "level": "advanced",
        "isPublished": False,
        "modules": [],
    },
]


async def seed_admin(auth: AuthService, email: str, password: str) -> None:
    if await auth.get_user_by_email(email):
        logger.info("seed_admin_skipped_exists", email=email)
        return

    user = await auth.register_user(
        SignupRequest(
            name="Administrator",
            email=email,
            password=password,
            passwordConfirmation=password,
        ),
        role=UserRole.ADMIN,
    )
    logger.info("seed_admin_created", user_id=str(user.id), email=user.email)


async def seed_courses(
    courses: CourseService, instructor_email: str, auth: AuthService
) -> int:
    instructor = await auth.get_user_by_email(instructor_email)
    created = 0
    for payload in SAMPLE_COURSES:
        if await courses.get_course_by_slug(generate_slug(payload["title"])):
            logger.info("seed_course_skipped_exists", title=payload["title"])
            continue
        await courses.create_course(
            CreateCourseRequest.model_validate(payload),
            instructor_id=instructor.id,
        )
        created += 1
    return created


async def run_seed(email: str, password: str) -> None:
    settings = get_settings()
    session = await init_async_cassandra()
    keyspace = settings.cassandra_keyspace

    try:
        auth = AuthService(session=session, keyspace=keyspace)
        await seed_admin(auth, email, password)
        created = await seed_courses(
            CourseService(session=session, keyspace=keyspace), email, auth
        )
        logger.info("seed_completed", keyspace=keyspace, courses_created=created)
    finally:
        await shutdown_async_cassandra()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--email", default="admin@example.com")
    parser.add_argument("--password", default="password123")
    args = parser.parse_args()

    for result in (validate_email(args.email), validate_password(args.password)):
        if not result.valid:
            parser.error(result.message)

    asyncio.run(run_seed(args.email.lower(), args.password))


if __name__ == "__main__":
    main()
