from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean
from sqlalchemy.orm import declarative_base, sessionmaker, validates
from sqlalchemy.pool import StaticPool
import os
import time
import uuid

Base = declarative_base()

# Use DATABASE_PATH env var if set, otherwise default to local path
DATABASE_PATH = os.getenv('DATABASE_PATH', 'task_manager.db')


def now_ts():
    return int(time.time())


def make_engine(url):
    """Create an engine; in-memory SQLite shares one connection across the process."""
    if url in ('sqlite://', 'sqlite:///:memory:'):
        return create_engine(url, connect_args={'check_same_thread': False}, poolclass=StaticPool)
    return create_engine(url)


def make_session_factory(url):
    """Build an isolated engine with the schema created and return its sessionmaker."""
    bind = make_engine(url)
    Base.metadata.create_all(bind=bind)
    return sessionmaker(bind=bind, expire_on_commit=False)


engine = make_engine(f'sqlite:///{DATABASE_PATH}')
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class Task(Base):
    __tablename__ = 'tasks'
    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default='pending', index=True)  # pending, in-progress, completed, cancelled
    priority = Column(String, default='medium')  # urgent, high, medium, low
    assigned_to_user_id = Column(String, nullable=True, index=True)
    assigned_to_username = Column(String, nullable=True)
    created_by_user_id = Column(String, nullable=False, index=True)
    created_by_username = Column(String, nullable=False)
    team_id = Column(String, nullable=False, index=True)
    channel_id = Column(String, nullable=False)
    tags = Column(String, nullable=True)  # comma-joined
    due_date = Column(Integer, nullable=True, index=True)
    snooze_until = Column(Integer, nullable=True)
    created_at = Column(Integer, default=now_ts)
    updated_at = Column(Integer, default=now_ts)
    completed_at = Column(Integer, nullable=True)

    @validates('created_by_user_id')
    def _creator_is_immutable(self, key, value):
        current = self.__dict__.get('created_by_user_id')
        if current is not None and current != value:
            raise ValueError(f"Task {self.id} creator cannot change")
        return value

    @property
    def tag_list(self):
        return [t for t in (self.tags or '').split(',') if t]

    @property
    def short_id(self):
        return self.id[:8]

    @property
    def owner_id(self):
        """Recipient for reminders: the assignee, else the creator."""
        return self.assigned_to_user_id or self.created_by_user_id

    def __repr__(self):
        return f"<Task {self.short_id} {self.status} {self.title!r}>"


class User(Base):
    __tablename__ = 'users'
    user_id = Column(String, primary_key=True)
    username = Column(String, nullable=False, index=True)
    display_name = Column(String, nullable=True)
    real_name = Column(String, nullable=True)
    team_id = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    last_seen = Column(Integer, default=now_ts)


# Create tables
Base.metadata.create_all(bind=engine)

# CRUD functions


def create_task(db, title, created_by_user_id, created_by_username, team_id, channel_id,
                description=None, assigned_to_user_id=None, assigned_to_username=None,
                tags=None, due_date=None, priority='medium', task_id=None, created_at=None):
    ts = created_at if created_at is not None else now_ts()
    task = Task(
        id=task_id or str(uuid.uuid4()),
        title=title,
        description=description,
        status='pending',
        priority=priority or 'medium',
        assigned_to_user_id=assigned_to_user_id,
        assigned_to_username=assigned_to_username,
        created_by_user_id=created_by_user_id,
        created_by_username=created_by_username,
        team_id=team_id,
        channel_id=channel_id,
        tags=','.join(dict.fromkeys(tags)) if tags else None,
        due_date=due_date,
        created_at=ts,
        updated_at=ts,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def get_task(db, task_id):
    return db.query(Task).filter(Task.id == task_id).first()


def update_task_status(db, task_id, status, now=None):
    ts = now if now is not None else now_ts()
    task = get_task(db, task_id)
    if task:
        task.status = status
        task.completed_at = ts if status == 'completed' else None
        task.updated_at = ts
        db.commit()
    return task


def snooze_task(db, task_id, snooze_until, now=None):
    task = get_task(db, task_id)
    if task:
        task.snooze_until = snooze_until
        task.updated_at = now if now is not None else now_ts()
        db.commit()
    return task


def clear_task_snooze(db, task_id):
    task = get_task(db, task_id)
    if task:
        task.snooze_until = None
        db.commit()
    return task


def update_task_assignment(db, task_id, user_id, username, now=None):
    task = get_task(db, task_id)
    if task:
        task.assigned_to_user_id = user_id
        task.assigned_to_username = username
        task.updated_at = now if now is not None else now_ts()
        db.commit()
    return task


def delete_task(db, task_id, created_by_user_id):
    task = db.query(Task).filter(
        Task.id == task_id, Task.created_by_user_id == created_by_user_id
    ).first()
    if task:
        db.delete(task)
        db.commit()
    return task


def upsert_user(db, user_id, username, team_id, display_name=None, real_name=None):
    user = db.query(User).filter(User.user_id == user_id).first()
    if user is None:
        user = User(user_id=user_id)
        db.add(user)
    user.username = username
    user.team_id = team_id
    user.display_name = display_name or user.display_name
    user.real_name = real_name or user.real_name
    user.is_active = True
    user.last_seen = now_ts()
    db.commit()
    db.refresh(user)
    return user


def get_user(db, user_id):
    return db.query(User).filter(User.user_id == user_id).first()


def get_user_by_username(db, username, team_id):
    return db.query(User).filter(
        User.username == username, User.team_id == team_id, User.is_active.is_(True)
    ).first()
