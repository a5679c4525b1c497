import pytest
from jqsh.jqsh_config import DEFAULT_PROMPT, ConfigError, ShellConfig, config_path, load_config
from jqsh.jqsh_runtime import QueryRunner


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("JQSH_CONFIG", raising=False)
    monkeypatch.delenv("JQSH_PROMPT", raising=False)
    return tmp_path


def test_defaults_without_a_file(home):
    assert config_path() is None
    config = load_config()
    assert config == ShellConfig()
    assert config.prompt == DEFAULT_PROMPT
    assert config.queue_size == 1

def test_rc_file_in_home(home):
    (home / ".jqshrc.yaml").write_text("prompt: 'jq> '\nqueue_size: 4\n")
    config = load_config()
    assert config.prompt == "jq> "
    assert config.queue_size == 4

def test_explicit_path_from_environment(home, monkeypatch):
    path = home / "other.yaml"
    path.write_text("prelude: false\n")
    monkeypatch.setenv("JQSH_CONFIG", str(path))
    assert config_path() == path
    assert load_config().prelude is False

def test_prompt_override(home, monkeypatch):
    monkeypatch.setenv("JQSH_PROMPT", "> ")
    assert load_config().prompt == "> "

def test_empty_file_is_defaults(home):
    path = home / "empty.yaml"
    path.write_text("")
    assert load_config(path) == ShellConfig()

@pytest.mark.parametrize("text", [
    "colour: red\n",
    "queue_size: 0\n",
    "queue_size: true\n",
    "queue_size: '2'\n",
    "prompt: 3\n",
    "prelude: yes please\n",
    "definitions: [a, b]\n",
    "- just\n- a list\n",
    "prompt: [unclosed\n",
])
def test_invalid_files(home, text):
    path = home / "bad.yaml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        load_config(path)

def test_missing_explicit_file(home):
    with pytest.raises(ConfigError):
        load_config(home / "nope.yaml")

def test_definition_sources():
    config = ShellConfig.from_mapping({"definitions": {"double": ". * 2", "inc(n)": ". + n"}})
    assert config.definition_sources() == ["def double: . * 2;", "def inc(n): . + n;"]

@pytest.mark.asyncio
async def test_definitions_reach_the_runner(home):
    (home / ".jqshrc.yaml").write_text("definitions:\n  double: '. * 2'\n")
    runner = QueryRunner(load_config())
    result = await runner.handle_query("3 | double")
    assert [str(v) for v in result.values] == ["6"]

@pytest.mark.asyncio
async def test_runner_without_prelude(home):
    runner = QueryRunner(ShellConfig(prelude=False))
    result = await runner.handle_query("[1] | map(.)")
    assert [str(v) for v in result.values] == ['raise "undefined-filter" {"name": "map/1"}']
