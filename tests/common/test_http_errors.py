import pytest
from flask import Flask

from src.settlement_engine.settlement_engine.common.http import register_error_handlers, status_for
from src.settlement_engine.settlement_engine.core.exceptions import (
    AlreadyClaimed,
    AlreadyProcessing,
    InvalidArgument,
    InvalidTransition,
    NotFound,
    SettlementFailure,
    UpstreamUnavailable,
)


@pytest.mark.parametrize(
    "error,code",
    [
        (InvalidArgument("bad"), 400),
        (NotFound("nope"), 404),
        (InvalidTransition("no"), 409),
        (AlreadyProcessing("busy"), 409),
        (AlreadyClaimed("taken"), 409),
        (UpstreamUnavailable("down"), 503),
        (SettlementFailure("unpaid"), 502),
    ],
)
def test_status_codes(error, code):
    assert status_for(error) == code


def test_error_handler_renders_json():
    app = Flask(__name__)
    register_error_handlers(app)

    @app.route("/boom")
    def boom():
        raise AlreadyProcessing("task t-1 is already being processed")

    resp = app.test_client().get("/boom")

    assert resp.status_code == 409
    assert resp.get_json() == {"error": "AlreadyProcessing", "message": "task t-1 is already being processed"}
