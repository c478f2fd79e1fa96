from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, text

from aniupdater import routes
from aniupdater.startup import create_app, run


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'db.sqlite'}")
    with eng.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE ani_info (id INTEGER PRIMARY KEY, title TEXT, update_count TEXT,"
                " update_info TEXT, image_url TEXT, detail_url TEXT, update_time TEXT,"
                " platform TEXT)"
            )
        )
    return eng


def test_create_app_binds_engine(engine):
    app = create_app(engine)
    assert app.extensions[routes.ENGINE_KEY] is engine


def test_health_check_route(engine):
    client = create_app(engine).test_client()
    assert client.get("/health_check").status_code == 200
    assert client.post("/health_check").status_code == 405


def test_anis_routes(engine):
    client = create_app(engine).test_client()
    listing = client.get("/anis")
    assert listing.status_code == 200
    assert listing.get_json() == []
    assert client.get("/anis/1").status_code == 404


def test_login_route_is_post_only(engine):
    client = create_app(engine).test_client()
    assert client.get("/login").status_code == 405
    assert client.post("/login", json={"username": "a"}).status_code == 400


def test_register_is_not_routed(engine):
    client = create_app(engine).test_client()
    assert client.post("/register", json={}).status_code == 404


def test_run_serves_on_address(engine):
    with patch("flask.Flask.run", autospec=True) as serve:
        run("127.0.0.1", 8000, engine)
    assert serve.call_count == 1
    served_app = serve.call_args.args[0]
    assert serve.call_args.kwargs == {"host": "127.0.0.1", "port": 8000}
    assert served_app.extensions[routes.ENGINE_KEY] is engine
    assert served_app.test_client().get("/health_check").status_code == 200