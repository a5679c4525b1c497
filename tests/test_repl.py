import importlib.util
import sys
import uuid
from pathlib import Path

import pytest

def _load_repl_module():
    """Dynamically load the top-level jqsh.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "jqsh.py"
    mod_name = f"jqsh_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

@pytest.fixture
def repl(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("JQSH_CONFIG", raising=False)
    monkeypatch.delenv("JQSH_PROMPT", raising=False)
    monkeypatch.setattr(sys, "argv", ["jqsh.py"])
    return _load_repl_module()

def _feed(monkeypatch, repl, lines):
    """Answers each prompt with the next line; EOF once they run out."""
    lines = iter(lines)
    prompts = []

    async def fake_ainput(prompt: str) -> str:
        prompts.append(prompt)
        return next(lines, "")
    monkeypatch.setattr(repl, "ainput", fake_ainput)
    return prompts

@pytest.mark.asyncio
async def test_repl_eof_quits(monkeypatch, capsys, repl):
    prompts = _feed(monkeypatch, repl, [])
    await repl.main()
    assert capsys.readouterr().out == "\n"
    assert prompts == ["jqsh> "]

@pytest.mark.asyncio
async def test_repl_prints_each_value(monkeypatch, capsys, repl):
    _feed(monkeypatch, repl, ["1, 2, 3\n", "\n", '{"a": [1]}\n'])
    await repl.main()
    out = capsys.readouterr().out
    assert out.splitlines() == ["1", "2", "3", '{"a": [1]}', ""]

@pytest.mark.asyncio
async def test_repl_keeps_definitions(monkeypatch, capsys, repl):
    _feed(monkeypatch, repl, ["def double: . * 2;\n", "3 | double\n"])
    await repl.main()
    assert capsys.readouterr().out.splitlines() == ["6", ""]

@pytest.mark.asyncio
async def test_repl_continues_after_a_syntax_error(monkeypatch, capsys, repl):
    _feed(monkeypatch, repl, ["def inc: . + 1;\n", "1 +\n", "1 | inc\n"])
    await repl.main()
    out, err = capsys.readouterr()
    lines = out.splitlines()
    assert lines[0].startswith("jqsh: syntax error: ")
    assert lines[1:] == ["2", ""]
    assert err == ""

@pytest.mark.asyncio
async def test_repl_appends_history(monkeypatch, capsys, repl, tmp_path):
    history = tmp_path / "history"
    (tmp_path / ".jqshrc.yaml").write_text(f"history_file: {history}\nprompt: '% '\n")
    prompts = _feed(monkeypatch, repl, ["1\n", "  \n", " 2 \n"])
    await repl.main()
    assert history.read_text() == "1\n2\n"
    assert set(prompts) == {"% "}

@pytest.mark.asyncio
async def test_repl_bad_config_exits(monkeypatch, capsys, repl, tmp_path):
    (tmp_path / ".jqshrc.yaml").write_text("colour: red\n")
    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    assert "unknown config keys: colour" in capsys.readouterr().err

@pytest.mark.asyncio
async def test_one_shot_over_a_file(monkeypatch, capsys, repl, tmp_path):
    data = tmp_path / "data.json"
    data.write_text('{"a": 1} {"a": 2}')
    monkeypatch.setattr(sys, "argv", ["jqsh.py", ".a * 10", str(data)])
    await repl.main()
    assert capsys.readouterr().out.splitlines() == ["10", "20"]

@pytest.mark.asyncio
async def test_one_shot_without_a_file(monkeypatch, capsys, repl):
    monkeypatch.setattr(sys, "argv", ["jqsh.py", "range(2)"])
    await repl.main()
    assert capsys.readouterr().out.splitlines() == ["0", "1"]

@pytest.mark.asyncio
async def test_one_shot_syntax_error_exits_with_2(monkeypatch, capsys, repl):
    monkeypatch.setattr(sys, "argv", ["jqsh.py", "(1"])
    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 2
    assert capsys.readouterr().out.startswith("jqsh: syntax error: ")

@pytest.mark.asyncio
async def test_one_shot_missing_file(monkeypatch, capsys, repl, tmp_path):
    monkeypatch.setattr(sys, "argv", ["jqsh.py", ".", str(tmp_path / "nope.json")])
    with pytest.raises(SystemExit) as info:
        await repl.main()
    assert info.value.code == 1
    assert "file not found" in capsys.readouterr().err
