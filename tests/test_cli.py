"""Test command line entry points."""

from speedsoc.__main__ import main, parse_args


class TestCommandLine:
    """Test synth and replay commands end to end."""

    def test_parse_replay_args(self):
        args = parse_args(["replay", "trace.csv", "--stop-at-target"])

        assert args.command == "replay"
        assert args.trace == "trace.csv"
        assert args.stop_at_target is True

    def test_synth_then_replay(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SPEEDSOC_CONFIG", raising=False)
        trace = tmp_path / "trace.csv"

        assert main(["synth", str(trace), "--seed", "7", "--noise", "0"]) == 0
        assert trace.exists()

        assert main(["replay", str(trace)]) == 0

        out = capsys.readouterr().out
        assert "Samples: 241 processed, 241 accepted" in out
        assert "Target 80% reached" in out
        assert "never" not in out

    def test_replay_missing_trace_fails(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SPEEDSOC_CONFIG", raising=False)

        assert main(["replay", str(tmp_path / "missing.csv")]) == 1

    def test_replay_trace_with_mixed_offsets(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SPEEDSOC_CONFIG", raising=False)
        trace = tmp_path / "mixed.csv"
        trace.write_text(
            "timestamp,power_w\n"
            "2025-01-01T12:00:00Z,4000\n"
            "2025-01-01T12:01:00+01:00,4000\n"
            "2025-01-01T12:02:00Z,nan\n"
        )

        assert main(["replay", str(trace)]) == 0
        assert "Samples: 2 processed" in capsys.readouterr().out
