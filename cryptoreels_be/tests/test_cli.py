import json

import pytest

from cryptoreels_be.app import create_app
from cryptoreels_be.config import TestingConfig


@pytest.fixture()
def runner():
    return create_app(TestingConfig).test_cli_runner()


def test_validate_bundled_catalog(runner):
    result = runner.invoke(args=['validate-catalog'])
    assert result.exit_code == 0
    assert 'Symbol catalog is valid.' in result.output


def test_validate_catalog_reports_errors(runner, tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text(json.dumps({'game': {'symbols': [
        {'id': 'coin', 'name': 'Coin', 'category': 'regular', 'weight': 0,
         'payouts': {'3': 1, '4': 2, '5': 3, '6': 4}},
    ]}}))

    result = runner.invoke(args=['validate-catalog', '--path', str(path)])
    assert result.exit_code != 0
    assert 'ERROR: Symbol coin has invalid weight: 0' in result.output


def test_validate_catalog_missing_file(runner, tmp_path):
    result = runner.invoke(args=['validate-catalog', '--path', str(tmp_path / 'missing.json')])
    assert result.exit_code != 0
    assert 'not found' in result.output


def test_simulate(runner):
    result = runner.invoke(args=['simulate', '--spins', '20', '--bet', '1', '--seed', '4'])
    assert result.exit_code == 0, result.output
    assert 'Total Spins Simulated: 20' in result.output
    assert 'Overall RTP:' in result.output
