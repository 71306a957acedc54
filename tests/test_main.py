"""Unit tests for the command line entry point."""

import os

import pytest
import yaml

from conftest import FakeServicingOps
from wdspatch import main as cli
from wdspatch.models import EXIT_IMAGES_FAILED, EXIT_OK, EXIT_SETUP_FAILED


class ScriptedPrompt:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []

    def __call__(self, question):
        self.questions.append(question)
        return self.answers.pop(0)


@pytest.fixture
def backend(fake_ops, monkeypatch):
    created = {}

    def factory(dry_run=False, powershell="powershell.exe"):
        created["dry_run"] = dry_run
        created["powershell"] = powershell
        return fake_ops

    monkeypatch.setattr(cli, "get_servicing_ops", factory)
    fake_ops.created = created
    return fake_ops


@pytest.mark.unit
class TestMain:

    def test_prompts_for_both_paths_in_order(self, backend, scratch_dir, content_dir):
        prompt = ScriptedPrompt(scratch_dir, f'"{content_dir}"')

        code = cli.main(["--tool-name", "wdspatch"], prompt=prompt)

        assert code == EXIT_OK
        assert prompt.questions == [cli.SCRATCH_PROMPT, cli.CONTENT_PROMPT]
        export_call = backend.calls[1]
        assert export_call[0] == "export"
        assert export_call[4].startswith(scratch_dir)

    def test_arguments_skip_prompts(self, backend, scratch_dir, content_dir):
        prompt = ScriptedPrompt()
        code = cli.main(["--scratch", scratch_dir, "--wsus-content", content_dir], prompt=prompt)
        assert code == EXIT_OK
        assert prompt.questions == []

    def test_config_file_supplies_paths(self, backend, tmp_path, scratch_dir, content_dir):
        cfg_path = tmp_path / "wdspatch.yaml"
        cfg_path.write_text(yaml.safe_dump({
            "paths": {"scratch_path": scratch_dir, "wsus_content_path": content_dir},
            "servicing": {"powershell": "pwsh.exe"},
        }))
        code = cli.main(["--config", str(cfg_path)], prompt=ScriptedPrompt())
        assert code == EXIT_OK
        assert backend.created["powershell"] == "pwsh.exe"

    def test_empty_answer_aborts(self, backend):
        code = cli.main([], prompt=ScriptedPrompt("   "))
        assert code == EXIT_SETUP_FAILED
        assert backend.calls == []

    def test_eof_on_prompt_aborts(self, backend):
        def closed(question):
            raise EOFError

        assert cli.main([], prompt=closed) == EXIT_SETUP_FAILED

    def test_requires_admin_unless_dry_run(self, backend, scratch_dir, content_dir, monkeypatch):
        monkeypatch.setattr(backend, "check_admin_privileges", lambda: False)
        args = ["--scratch", scratch_dir, "--wsus-content", content_dir]

        assert cli.main(args, prompt=ScriptedPrompt()) == EXIT_SETUP_FAILED
        assert backend.calls == []

        assert cli.main(args + ["--dry-run"], prompt=ScriptedPrompt()) == EXIT_OK
        assert backend.created["dry_run"] is True

    def test_image_failure_exit_code(self, backend, scratch_dir, content_dir):
        backend.fail["export"] = {"Win10 Pro | base"}
        code = cli.main(["--scratch", scratch_dir, "--wsus-content", content_dir],
                        prompt=ScriptedPrompt())
        assert code == EXIT_IMAGES_FAILED

    def test_uncreatable_scratch_exit_code(self, backend, tmp_path, content_dir):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        code = cli.main(["--scratch", str(blocker / "s"), "--wsus-content", content_dir],
                        prompt=ScriptedPrompt())
        assert code == EXIT_SETUP_FAILED
        assert backend.calls == []

    def test_image_filter_and_cleanup_options(self, backend, scratch_dir, content_dir):
        code = cli.main(
            ["--scratch", scratch_dir, "--wsus-content", content_dir,
             "--image", "Server*", "--cleanup", "always"],
            prompt=ScriptedPrompt(),
        )
        assert code == EXIT_OK
        assert backend.call_names() == ["list_images"]

    @pytest.mark.parametrize("extra,export_kept", [([], True), (["--cleanup", "always"], False)])
    def test_cleanup_option_on_mount_failure(self, backend, scratch_dir, content_dir,
                                             extra, export_kept):
        exported = os.path.join(scratch_dir, "install.wim")
        backend.fail["mount"] = {exported}

        code = cli.main(["--scratch", scratch_dir, "--wsus-content", content_dir] + extra,
                        prompt=ScriptedPrompt())

        assert code == EXIT_IMAGES_FAILED
        assert os.path.exists(exported) is export_kept

    def test_applies_system_date_format(self, backend, scratch_dir, content_dir, monkeypatch):
        switched = []
        monkeypatch.setattr(cli, "use_system_date_format", lambda: switched.append(True))

        cli.main(["--scratch", scratch_dir, "--wsus-content", content_dir],
                 prompt=ScriptedPrompt())

        assert switched == [True]

    def test_bad_config_file(self, backend, tmp_path):
        cfg_path = tmp_path / "bad.json"
        cfg_path.write_text("{oops")
        assert cli.main(["--config", str(cfg_path)], prompt=ScriptedPrompt()) == EXIT_SETUP_FAILED


@pytest.mark.unit
def test_dump_default_config(tmp_path, capsys):
    target = tmp_path / "default.yaml"
    assert cli.main(["--dump-default-config", str(target)]) == 0
    assert target.exists()
    assert str(target) in capsys.readouterr().out
