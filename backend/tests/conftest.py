import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quizbank.db.base import Base
from quizbank.models import Group, Question, Subtheme, Tenant, Theme, User
from quizbank.services.aggregate_store import AggregateStore
from quizbank.services.triggers import DocumentWriter, build_trigger_engine


class FakeRedis:
    """Sorted-set subset of redis-py; every member has score 0."""

    def __init__(self):
        self.zsets = {}
        self.calls = []

    def zadd(self, key, mapping, nx=False):
        self.calls.append(("zadd", key, tuple(str(m) for m in mapping)))
        z = self.zsets.setdefault(key, set())
        added = 0
        for member in mapping:
            member = str(member)
            if member in z:
                continue
            z.add(member)
            added += 1
        return added

    def zrem(self, key, *members):
        self.calls.append(("zrem", key, tuple(str(m) for m in members)))
        z = self.zsets.get(key, set())
        removed = 0
        for member in members:
            if str(member) in z:
                z.discard(str(member))
                removed += 1
        return removed

    def zcard(self, key):
        return len(self.zsets.get(key, set()))

    def zrange(self, key, start, end):
        ordered = sorted(self.zsets.get(key, set()))
        if end < 0:
            end = len(ordered) + end
        return [m.encode("utf-8") for m in ordered[start : end + 1]]

    def delete(self, *keys):
        for key in keys:
            self.zsets.pop(key, None)

    def mutations(self):
        return [c for c in self.calls if c[0] in {"zadd", "zrem"}]


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def store(fake_redis):
    return AggregateStore(fake_redis, prefix="test", rng=random.Random(7))


@pytest.fixture()
def writer(db, store):
    return DocumentWriter(db, build_trigger_engine(store))


@pytest.fixture()
def tenant(db):
    t = Tenant(slug="ortoqbank", name="OrtoQBank")
    db.add(t)
    db.add(User(id=1, email="user1@demo.local", full_name="User 1", role="user"))
    db.add(User(id=2, email="admin2@demo.local", full_name="Admin 2", role="admin"))
    db.commit()
    return t


@pytest.fixture()
def taxonomy(db, tenant):
    """Trauma (T1) with subthemes S1 (groups G1, G2) and S2; Pediatrics (T2) with S3."""
    t1 = Theme(tenant_id=tenant.id, name="Trauma")
    t2 = Theme(tenant_id=tenant.id, name="Pediatrics")
    db.add_all([t1, t2])
    db.flush()
    s1 = Subtheme(tenant_id=tenant.id, theme_id=t1.id, name="Upper limb")
    s2 = Subtheme(tenant_id=tenant.id, theme_id=t1.id, name="Lower limb")
    s3 = Subtheme(tenant_id=tenant.id, theme_id=t2.id, name="Hip")
    db.add_all([s1, s2, s3])
    db.flush()
    g1 = Group(tenant_id=tenant.id, subtheme_id=s1.id, name="Shoulder")
    g2 = Group(tenant_id=tenant.id, subtheme_id=s1.id, name="Elbow")
    db.add_all([g1, g2])
    db.commit()
    return {"T1": t1, "T2": t2, "S1": s1, "S2": s2, "S3": s3, "G1": g1, "G2": g2}


@pytest.fixture()
def make_question(db, writer, tenant):
    counter = {"n": 0}

    def _make(theme, subtheme=None, group=None, title=None):
        counter["n"] += 1
        q = Question(
            tenant_id=tenant.id,
            theme_id=theme.id,
            subtheme_id=subtheme.id if subtheme is not None else None,
            group_id=group.id if group is not None else None,
            title=title or f"Question {counter['n']}",
            normalized_title=(title or f"question {counter['n']}").lower(),
            question_text="...",
            alternatives=["a", "b", "c", "d"],
            correct_alternative_index=0,
        )
        writer.insert(q)
        db.commit()
        return q

    return _make
