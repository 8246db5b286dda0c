import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import DEFAULT_CATEGORIES, TransactionType
from schemas import CategoryIn
from services import CategoryNotFound, CategoryService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_defaults_are_seeded_once() -> None:
    session = make_session()
    service = CategoryService(session)

    income = service.list_all(TransactionType.income)
    assert [c.name for c in income] == list(DEFAULT_CATEGORIES[TransactionType.income])
    assert not service.ensure_defaults()
    assert len(service.list_all()) == sum(len(v) for v in DEFAULT_CATEGORIES.values())


def test_create_rejects_case_insensitive_duplicates() -> None:
    session = make_session()
    service = CategoryService(session)

    created = service.create(CategoryIn(name="Pets", type=TransactionType.expense))
    assert created.id is not None
    with pytest.raises(ValueError):
        service.create(CategoryIn(name="pets", type=TransactionType.expense))
    # Same name under the other type is a different category.
    service.create(CategoryIn(name="Pets", type=TransactionType.income))


def test_resolve_reuses_registered_spelling() -> None:
    session = make_session()
    service = CategoryService(session)

    assert service.resolve(TransactionType.expense, " housing ").name == "Housing"
    new = service.resolve(TransactionType.expense, "Streaming")
    session.commit()
    assert new.name == "Streaming"
    assert service.resolve(TransactionType.expense, "STREAMING").id == new.id
    with pytest.raises(ValueError):
        service.resolve(TransactionType.expense, "  ")


def test_suggest_finds_close_names() -> None:
    session = make_session()
    service = CategoryService(session)

    assert service.suggest(TransactionType.expense, "Fod") == ["Food"]
    assert service.suggest(TransactionType.expense, "trans") == ["Transportation"]
    assert service.suggest(TransactionType.income, "") == []


def test_delete_unknown_category() -> None:
    session = make_session()
    service = CategoryService(session)
    with pytest.raises(CategoryNotFound):
        service.delete(999)
    other_owner = CategoryService(session, user_id=2)
    category = service.list_all(TransactionType.expense)[0]
    with pytest.raises(CategoryNotFound):
        other_owner.delete(category.id)
