from datetime import datetime, timezone

import pytest

from aniupdater.domain import (
    AniHistoryInfo,
    AniInfo,
    SubscriberName,
    User,
)

UTC = timezone.utc


def _ani_info(update_time):
    return AniInfo(
        id=7,
        title="Frieren",
        update_count="12",
        update_info="更新至12集",
        image_url="https://img.example.com/a.jpg",
        detail_url="https://www.example.com/play/7",
        update_time=update_time,
        platform="bilibili",
    )


def test_ani_info_to_dto_renders_shanghai_time():
    dto = _ani_info(datetime(2025, 7, 17, 16, 0, 0, tzinfo=UTC)).to_dto()
    assert dto.update_time == "2025-07-18T00:00:00+08:00"
    assert dto.title == "Frieren"
    assert dto.to_dict()["update_time"] == dto.update_time


def test_ani_info_to_dto_keeps_instant():
    original = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)
    dto = _ani_info(original).to_dto()
    assert datetime.fromisoformat(dto.update_time) == original


def test_ani_info_to_dto_millisecond_fraction():
    dto = _ani_info(datetime(2025, 7, 17, 16, 0, 0, 500000, tzinfo=UTC)).to_dto()
    assert dto.update_time.endswith(".500+08:00")


def _user(updated_at=None):
    password = "password"
    return User(
        id=1,
        email="reader@example.com",
        username="reader",
        password=password,
        display_name="Reader",
        avatar_url="https://img.example.com/avatar.png",
        created_at=datetime(2025, 6, 1, tzinfo=UTC),
        updated_at=updated_at,
    )


def test_user_to_dto_camel_case_keys():
    data = _user().to_dto().to_dict()
    assert set(data) == {
        "id", "email", "username", "password",
        "displayName", "avatarUrl", "createdAt", "updatedAt",
    }
    assert data["updatedAt"] is None
    assert data["displayName"] == "Reader"
    assert datetime.fromisoformat(data["createdAt"]) == datetime(2025, 6, 1, tzinfo=UTC)


def test_user_to_dto_updated_at_converted():
    updated = datetime(2025, 6, 2, 12, 30, tzinfo=UTC)
    dto = _user(updated).to_dto()
    assert datetime.fromisoformat(dto.updated_at) == updated
    assert dto.updated_at.endswith("+08:00")


def test_ani_history_info_to_dict():
    info = AniHistoryInfo(
        id=3, title="T", update_count="1", update_info="u", image_url="i",
        detail_url="d", is_watched=True, user_id="u1",
        update_time=datetime(2025, 7, 18, tzinfo=UTC), watched_time=None,
        platform="youku", total_count=9,
    )
    data = info.to_dict()
    assert data["updateTime"].endswith("Z")
    assert datetime.fromisoformat(data["updateTime"].replace("Z", "+00:00")) == info.update_time
    assert data["watchedTime"] is None
    assert data["totalCount"] == 9
    assert data["isWatched"] is True


def test_subscriber_name_valid():
    assert str(SubscriberName.parse("Ursula Le Guin")) == "Ursula Le Guin"


def test_subscriber_name_256_graphemes_is_valid():
    name = "ё" * 256
    assert str(SubscriberName.parse(name)) == name


def test_subscriber_name_combining_marks_count_as_one_grapheme():
    name = "a\u0301" * 256
    assert SubscriberName.parse(name).value == name


def test_subscriber_name_too_long():
    with pytest.raises(ValueError):
        SubscriberName.parse("a" * 257)


@pytest.mark.parametrize("name", ["", " ", "\t\n"])
def test_subscriber_name_blank(name):
    with pytest.raises(ValueError):
        SubscriberName.parse(name)


@pytest.mark.parametrize("ch", list('/()"<>\\{}'))
def test_subscriber_name_forbidden_characters(ch):
    with pytest.raises(ValueError):
        SubscriberName.parse(f"name{ch}")


def test_subscriber_name_error_message():
    with pytest.raises(ValueError, match="is not a valid subscriber name."):
        SubscriberName.parse("bad/name")