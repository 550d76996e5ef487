"""Fixtures for users and their platform links."""

import pytest

from memobot.models.user import PlatformLink, User

TELEGRAM_USER_ID = "789"


@pytest.fixture(scope="function")
def setup_user(db, faker):
    """Create an account with an email address."""
    user = User(email=faker.email(), display_name=faker.first_name())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def setup_another_user(db, faker):
    user = User(email=faker.email(), display_name=faker.first_name())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def setup_telegram_link(db, setup_user):
    """Link Telegram user 789 (private chat 789) to setup_user."""
    link = PlatformLink(
        user_id=setup_user.id,
        channel="telegram",
        external_user_id=TELEGRAM_USER_ID,
        delivery_address=TELEGRAM_USER_ID,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link
