"""
Tests for the environment self-check.
"""
from config import environment_setup
from config.environment_setup import check_configuration, get_environment_info


class TestCheckConfiguration:
    """Test cases for check_configuration."""

    def test_bundled_templates_pass(self):
        assert check_configuration() == []

    def test_missing_templates_reported(self, temp_templates_dir):
        problems = check_configuration(temp_templates_dir)

        assert len(problems) == 2
        assert any('annual_accounts' in problem for problem in problems)
        assert any('confirmation_statement' in problem for problem in problems)

    def test_bad_base_url(self, mocker):
        mocker.patch.dict(environment_setup.API_CONFIG, {'base_url': 'localhost:5000'})

        problems = check_configuration()

        assert problems == ["Filing API base URL is not an http(s) URL: 'localhost:5000'"]


class TestEnvironmentInfo:
    """Test cases for get_environment_info."""

    def test_cookie_is_not_exposed(self, mocker):
        mocker.patch.dict(environment_setup.API_CONFIG, {'session_cookie': 'connect.sid=secret'})

        info = get_environment_info()

        assert info['session_cookie'] == 'set'
        assert 'secret' not in ''.join(info.values())
