import pytest
from marshmallow import ValidationError

from cryptoreels_be.app import create_app
from cryptoreels_be.config import TestingConfig
from cryptoreels_be.exceptions import AppException, GameLogicException, ValidationException
from cryptoreels_be.error_codes import ErrorCodes


class TestAppErrorHandlers:

    @pytest.fixture(scope="class")
    def app(self):
        app = create_app(TestingConfig)

        @app.route('/test/app_exception')
        def route_app_exception():
            raise AppException(
                error_code="TEST_APP_EXC",
                status_message="This is an AppException",
                status_code=450,
                details={"info": "some app details"},
                action_button={"text": "Retry", "actionType": "RETRY"}
            )

        @app.route('/test/validation_exception')
        def route_validation_exception():
            raise ValidationException(status_message="Invalid input provided", details={"field": "wrong"})

        @app.route('/test/engine_error')
        def route_engine_error():
            raise GameLogicException("Engine invariant broken", status_code=500)

        @app.route('/test/unhandled_exception')
        def route_unhandled_exception():
            raise ValueError("A generic unhandled error")

        @app.route('/test/marshmallow_validation_error', methods=['POST'])
        def route_marshmallow_error():
            raise ValidationError({"test_field": ["Marshmallow schema validation failed"]})

        yield app

    @pytest.fixture()
    def client(self, app):
        return app.test_client()

    def test_app_exception_handler(self, client, caplog):
        response = client.get('/test/app_exception')
        assert response.status_code == 450
        json_data = response.get_json()
        assert json_data['status'] is False
        assert json_data['error_code'] == "TEST_APP_EXC"
        assert json_data['status_message'] == "This is an AppException"
        assert json_data['details'] == {"info": "some app details"}
        assert json_data['action_button'] == {"text": "Retry", "actionType": "RETRY"}
        assert any(rec.levelname == 'ERROR' and 'TEST_APP_EXC' in rec.getMessage() for rec in caplog.records)

    def test_validation_exception_handler(self, client):
        response = client.get('/test/validation_exception')
        assert response.status_code == 422
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert json_data['details'] == {"field": "wrong"}

    def test_engine_error_is_a_server_error(self, client):
        response = client.get('/test/engine_error')
        assert response.status_code == 500
        assert response.get_json()['error_code'] == ErrorCodes.GAME_LOGIC_ERROR

    def test_marshmallow_validation_error_handler(self, client, caplog):
        response = client.post('/test/marshmallow_validation_error', json={})
        assert response.status_code == 422
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert json_data['status_message'] == "Input validation failed."
        assert json_data['details']['errors'] == {"test_field": ["Marshmallow schema validation failed"]}
        assert any(rec.levelname == 'WARNING' and ErrorCodes.VALIDATION_ERROR in rec.getMessage() for rec in caplog.records)

    def test_unhandled_exception_handler(self, client, caplog):
        response = client.get('/test/unhandled_exception')
        assert response.status_code == 500
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.INTERNAL_SERVER_ERROR
        assert json_data['status_message'] == 'An unexpected internal server error occurred. Please try again later.'
        assert json_data['details'] == {}
        assert any(rec.levelname == 'CRITICAL' for rec in caplog.records)

    def test_request_ids_are_unique(self, client):
        first = client.get('/test/validation_exception').get_json()['request_id']
        second = client.get('/test/validation_exception').get_json()['request_id']
        assert first != second
        assert first != 'N/A'
