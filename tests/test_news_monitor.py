import allure
from click.testing import CliRunner

from news_monitor import __version__
from news_monitor.main import news_monitor

pytestmark = [
    allure.epic("Pipeline Operations"),
    allure.feature("CLI"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(news_monitor, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
