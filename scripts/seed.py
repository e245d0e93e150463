"""Database seeder: posts, comments and likes for local development."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from app.database import engine, async_session, Base
from app.models import Comment, Post
from app.security import create_access_token

PHRASES = ["Great post!", "Thanks for sharing.", "I disagree with the second point.",
           "Bookmarked.", "Could you write a follow-up?", "This helped me a lot.",
           "Typo in the third paragraph.", "First!"]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 20 if small else 1000
    max_comments_per_post = 3 if small else 10

    print(f"Seeding: {num_posts} posts, up to {num_posts * max_comments_per_post} comments")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    users = [f"user_{i:04d}" for i in range(num_users)]
    total_comments = 0
    total_likes = 0

    async with async_session() as session:
        posts = []
        for i in range(num_posts):
            post = Post(
                author_id=random.choice(users),
                title=f"Post {i}",
                created_at=datetime.now(timezone.utc) - timedelta(days=random.randint(30, 365)),
            )
            session.add(post)
            posts.append(post)
        await session.flush()
        print(f"  Created {len(posts)} posts")

        for post in posts:
            for _ in range(random.randint(0, max_comments_per_post)):
                # liked_by and like_count are written together, as the store does.
                liked_by = sorted(random.sample(users, k=random.randint(0, min(5, num_users))))
                session.add(Comment(
                    post_id=post.id,
                    author_id=random.choice(users),
                    content=random.choice(PHRASES),
                    liked_by=liked_by,
                    like_count=len(liked_by),
                    version=0,
                    created_at=post.created_at + timedelta(days=random.randint(0, 60)),
                ))
                total_comments += 1
                total_likes += len(liked_by)
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Likes: {total_likes}")
    print("\nDemo tokens (Authorization: Bearer <token>):")
    print(f"  {users[0]}: {create_access_token(users[0])}")
    print(f"  moderator: {create_access_token('moderator', is_moderator=True)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the comments database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (20 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
