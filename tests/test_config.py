from storytest.config import Settings, check_jira_settings, DEFAULT_JIRA_BASE_URL


def test_check_passes_with_complete_settings(jira_settings):
    check = check_jira_settings(jira_settings)

    assert check.hasCredentials is True
    assert check.warnings == []
    assert check.baseUrl == "https://test.atlassian.net/"


def test_check_warns_instead_of_failing():
    check = check_jira_settings(Settings(_env_file=None, jira_email="", jira_api_token="token"))

    assert check.emailSet is False
    assert check.apiTokenSet is True
    assert check.hasCredentials is False
    assert len(check.warnings) == 2
    assert DEFAULT_JIRA_BASE_URL in check.warnings[1]


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("JIRA_BASE_URL", "https://env.atlassian.net")
    monkeypatch.setenv("JIRA_EMAIL", "env@example.com")
    monkeypatch.setenv("JIRA_API_TOKEN", "env-token")
    monkeypatch.setenv("MAX_TEST_CASES", "4")

    settings = Settings(_env_file=None)

    assert settings.jira_base_url == "https://env.atlassian.net"
    assert settings.jira_email == "env@example.com"
    assert settings.max_test_cases == 4
    assert settings.jira_timeout is None
