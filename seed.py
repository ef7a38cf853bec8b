from datetime import datetime, timezone

from app.auth import create_access_token
from app.database import SessionLocal, engine, Base
from app.models import Announcement, Comment, Notification, Post, PostStatus, Role, User

# Create tables
Base.metadata.create_all(bind=engine)

db = SessionLocal()

# Clear existing data
db.query(Notification).delete()
db.query(Comment).delete()
db.query(Post).delete()
db.query(Announcement).delete()
db.query(User).delete()

# Demo users, one per role
users = [
    User(username="reader", email="reader@example.com", role=Role.USER.value),
    User(username="writer", email="writer@example.com", role=Role.MEMBER.value),
    User(username="editor", email="editor@example.com", role=Role.ADMIN.value),
]
db.add_all(users)
db.commit()
reader, writer, editor = users

now = datetime.now(timezone.utc)

# Sample posts across the lifecycle
posts = [
    Post(
        author_id=writer.id,
        title="Welcome to the blog",
        content="Our first published post.",
        status=PostStatus.PUBLISHED.value,
        published_at=now,
        likes=[reader.id],
        edit_history=[],
    ),
    Post(
        author_id=writer.id,
        title="Work in progress",
        content="Still drafting this one.",
        status=PostStatus.DRAFT.value,
        likes=[],
        edit_history=[],
    ),
    Post(
        author_id=writer.id,
        title="Waiting for review",
        content="Submitted for approval.",
        status=PostStatus.PENDING.value,
        likes=[],
        edit_history=[],
    ),
]
db.add_all(posts)
db.commit()

db.add(Notification(
    recipient_id=editor.id,
    sender_id=writer.id,
    type="post_pending",
    title="New Post Pending Approval",
    message=f'{writer.username} has submitted a post "{posts[2].title}" for approval',
    post_id=posts[2].id,
    extra={},
))
db.add(Comment(post_id=posts[0].id, author_id=reader.id, content="Great start!"))
db.commit()

print("Database seeded successfully!")
print(f"  - {len(users)} users")
print(f"  - {len(posts)} posts")
for user in users:
    print(f"  - {user.username} ({user.role}) token: {create_access_token({'sub': user.id})}")

db.close()
