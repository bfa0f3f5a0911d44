from __future__ import annotations

import io

import main as cli
from signin.auth.password import PasswordHasher
from signin.storage.memory_store import InMemoryStorage


def test_hash_password_reads_stdin(monkeypatch, capsys, hasher) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("hunter2\n"))
    assert cli.main(["--hash-password"]) == 0
    digest = capsys.readouterr().out.strip()
    assert digest.startswith("$argon2id$")
    assert hasher.verify(digest, "hunter2")


def test_create_user_links_credential_account(monkeypatch, capsys, cfg) -> None:
    storage = InMemoryStorage()
    monkeypatch.setattr("signin.storage.config.build_storage", lambda *_a, **_kw: storage)
    monkeypatch.setattr("sys.stdin", io.StringIO("pw-123\n"))

    assert cli.main(["--create-user", "ops@x.com", "--name", "Ops"]) == 0
    assert "Created user ops@x.com" in capsys.readouterr().out

    found = storage.find_user_by_email("ops@x.com")
    assert found.user.name == "Ops"
    assert PasswordHasher.from_config(cfg).verify(found.credential_account().password_hash, "pw-123")


def test_migrate_without_postgres_exits_2(monkeypatch, capsys) -> None:
    from signin.storage.config import load_storage_config

    monkeypatch.delenv("POSTGRES_DSN", raising=False)
    monkeypatch.delenv("POSTGRES_HOST", raising=False)
    load_storage_config.cache_clear()
    assert cli.main(["--migrate"]) == 2
    assert "Postgres not configured" in capsys.readouterr().err


def test_no_arguments_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "--serve" in capsys.readouterr().out
