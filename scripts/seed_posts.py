"""Seed sample blog posts through the ingestion pipeline.

Usage:
    python -m scripts.seed_posts

Posts whose slug already exists are reported and skipped, so the script
can be re-run safely.
"""

import asyncio
import logging
import sys

from blog_api.config import get_settings
from blog_api.services.posts import CONFLICT, create_post

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

SEED_POSTS = [
    {
        "title": "Welcome to the Blog",
        "content": (
            "<h2>Hello, readers</h2>"
            "<p>This is the first post on the new blog. Posts are written in the "
            "admin dashboard and published when they are ready.</p>"
        ),
        "published": True,
    },
    {
        "title": "Writing Posts with Images",
        "content": (
            "<p>Upload an image from the editor toolbar and it is stored "
            "alongside your posts.</p>"
            '<p><img src="/uploads/example.png" alt="Example upload" width="600"></p>'
        ),
        "excerpt": "How image uploads work in the editor.",
        "published": True,
    },
    {
        "title": "A Draft in Progress",
        "content": "<p>Drafts stay hidden from the public site until published.</p>",
    },
]


async def main() -> int:
    settings = get_settings()
    print(
        f"Seeding {len(SEED_POSTS)} posts to "
        f"{settings.azure_storage_account}/{settings.azure_posts_container}..."
    )

    failed = 0
    for payload in SEED_POSTS:
        result = await create_post(payload)
        if result.ok:
            print(f"  Created: {result.post.slug}")
        elif result.status == CONFLICT:
            print(f"  Exists:  {payload['title']}")
        else:
            failed += 1
            print(f"  Failed:  {payload['title']} ({result.message})")

    print("Done!")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
