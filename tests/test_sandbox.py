"""
Tests for PathSandbox.authorize — the boundary every path crosses.

Covers: segment-wise root matching, relative and ~ paths, traversal,
symlink escapes (existing, dangling, through directories), creation
targets, and both case policies.

Run: python -m pytest tests/test_sandbox.py -v
"""

import logging
import os

import pytest

from rootguard.config.config import SandboxConfig
from rootguard.errors import AccessDenied, ParentMissing
from rootguard.sandbox.guard import PathSandbox


def make_sandbox(*roots, **kwargs) -> PathSandbox:
    return PathSandbox(SandboxConfig.from_directories([str(r) for r in roots], **kwargs))


@pytest.fixture
def root(tmp_path):
    r = tmp_path / "sandbox"
    r.mkdir()
    (r / "hello.txt").write_text("hi", "utf-8")
    (r / "sub").mkdir()
    return r.resolve()


@pytest.fixture
def outside(tmp_path):
    o = tmp_path / "outside"
    o.mkdir()
    (o / "secret.txt").write_text("top secret", "utf-8")
    return o.resolve()


# ─── Basic membership ─────────────────────────────────────────────────────

class TestMembership:
    def test_existing_file_returns_real_path(self, root):
        sb = make_sandbox(root)
        assert sb.authorize(str(root / "hello.txt")) == str(root / "hello.txt")

    def test_root_itself_is_allowed(self, root):
        sb = make_sandbox(root)
        assert sb.authorize(str(root)) == str(root)

    def test_new_file_returns_absolute_path(self, root):
        sb = make_sandbox(root)
        assert sb.authorize(str(root / "sub" / "new.txt")) == str(root / "sub" / "new.txt")

    def test_outside_path_denied(self, root, outside):
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied) as exc:
            sb.authorize(str(outside / "secret.txt"))
        assert exc.value.kind == "AccessDenied"
        assert str(outside / "secret.txt") in str(exc.value)

    def test_sibling_with_root_as_string_prefix_denied(self, tmp_path, root):
        sibling = tmp_path / "sandboxed"
        sibling.mkdir()
        (sibling / "file.txt").write_text("x", "utf-8")
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(sibling.resolve() / "file.txt"))

    def test_dotdot_traversal_denied(self, root, outside):
        sb = make_sandbox(root)
        candidate = os.path.join(str(root), "sub", "..", "..", "outside", "secret.txt")
        with pytest.raises(AccessDenied):
            sb.authorize(candidate)

    def test_dotdot_staying_inside_is_allowed(self, root):
        sb = make_sandbox(root)
        candidate = os.path.join(str(root), "sub", "..", "hello.txt")
        assert sb.authorize(candidate) == str(root / "hello.txt")

    def test_nul_byte_denied(self, root):
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "hello.txt") + "\x00.png")

    def test_second_root_is_allowed(self, root, outside):
        sb = make_sandbox(root, outside)
        assert sb.authorize(str(outside / "secret.txt")) == str(outside / "secret.txt")

    def test_overlapping_roots(self, root):
        sb = make_sandbox(root, root / "sub")
        assert sb.authorize(str(root / "sub" / "x.txt")) == str(root / "sub" / "x.txt")
        assert sb.is_allowed(str(root / "hello.txt"))

    def test_is_allowed_is_segment_wise(self, root):
        sb = make_sandbox(root)
        assert sb.is_allowed(str(root) + os.sep + "a")
        assert not sb.is_allowed(str(root) + "bc")


# ─── Relative and home paths ──────────────────────────────────────────────

class TestRelativePaths:
    def test_relative_resolves_against_working_dir(self, root):
        sb = make_sandbox(root, working_dir=str(root))
        assert sb.authorize("hello.txt") == str(root / "hello.txt")

    def test_relative_escape_denied(self, root, outside):
        sb = make_sandbox(root, working_dir=str(root))
        with pytest.raises(AccessDenied):
            sb.authorize("../outside/secret.txt")

    def test_relative_outside_working_dir_denied(self, root, outside):
        sb = make_sandbox(root, working_dir=str(outside))
        with pytest.raises(AccessDenied):
            sb.authorize("secret.txt")

    def test_home_shorthand(self, root):
        sb = make_sandbox(root, home_dir=str(root))
        assert sb.authorize("~/hello.txt") == str(root / "hello.txt")
        assert sb.authorize("~") == str(root)

    def test_tilde_user_is_not_expanded(self, root):
        sb = make_sandbox(root, home_dir=str(root), working_dir=str(root))
        # "~other/x" is an ordinary relative name, whose parent does not exist
        with pytest.raises(ParentMissing):
            sb.authorize("~other/x.txt")


# ─── Symlinks ─────────────────────────────────────────────────────────────

class TestSymlinks:
    def test_symlinked_dir_escape_denied(self, root, outside):
        os.symlink(outside, root / "link")
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "link" / "secret.txt"))
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "link"))

    def test_symlinked_file_escape_denied(self, root, outside):
        os.symlink(outside / "secret.txt", root / "evil.txt")
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "evil.txt"))

    def test_new_file_through_escaping_symlink_denied(self, root, outside):
        os.symlink(outside, root / "link")
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "link" / "new.txt"))

    def test_dangling_symlink_to_outside_denied(self, root, outside):
        os.symlink(outside / "not-yet.txt", root / "dangling.txt")
        sb = make_sandbox(root)
        with pytest.raises(AccessDenied):
            sb.authorize(str(root / "dangling.txt"))

    def test_internal_symlink_resolves_to_target(self, root):
        os.symlink(root / "hello.txt", root / "alias.txt")
        sb = make_sandbox(root)
        assert sb.authorize(str(root / "alias.txt")) == str(root / "hello.txt")

    def test_symlinked_root_accepts_both_spellings(self, tmp_path, root):
        alias = tmp_path / "alias-root"
        os.symlink(root, alias)
        sb = make_sandbox(alias)
        assert sb.authorize(str(alias / "hello.txt")) == str(root / "hello.txt")
        assert sb.authorize(str(alias / "brand-new.txt")) == str(alias / "brand-new.txt")


# ─── Creation targets ─────────────────────────────────────────────────────

class TestCreationTargets:
    def test_missing_parent(self, root):
        sb = make_sandbox(root)
        with pytest.raises(ParentMissing) as exc:
            sb.authorize(str(root / "missing" / "deeper" / "x.txt"))
        assert exc.value.kind == "ParentMissing"

    def test_parent_is_a_file(self, root):
        sb = make_sandbox(root)
        with pytest.raises(ParentMissing):
            sb.authorize(str(root / "hello.txt" / "x.txt"))

    def test_authorize_has_no_side_effects(self, root):
        sb = make_sandbox(root)
        before = sorted(os.listdir(root))
        sb.authorize(str(root / "sub" / "new.txt"))
        with pytest.raises(ParentMissing):
            sb.authorize(str(root / "a" / "b.txt"))
        assert sorted(os.listdir(root)) == before


# ─── Case policy ──────────────────────────────────────────────────────────

class TestCasePolicy:
    def test_case_sensitive_comparison(self, root):
        sb = make_sandbox(root, case_sensitive=True)
        assert not sb.is_allowed(str(root).upper() + os.sep + "x")
        assert sb.is_allowed(str(root) + os.sep + "x")

    def test_case_insensitive_comparison(self, root):
        sb = make_sandbox(root, case_sensitive=False)
        assert sb.is_allowed(str(root).upper() + os.sep + "x")
        assert sb.is_allowed(str(root).lower() + os.sep + "x")

    def test_differently_cased_sibling(self, tmp_path):
        lower = tmp_path / "cased"
        lower.mkdir()
        upper = tmp_path / "CASED"
        if upper.exists():
            pytest.skip("filesystem is case-insensitive")
        upper.mkdir()
        (upper / "other.txt").write_text("x", "utf-8")

        strict = make_sandbox(lower, case_sensitive=True)
        with pytest.raises(AccessDenied):
            strict.authorize(str(upper.resolve() / "other.txt"))

        loose = make_sandbox(lower, case_sensitive=False)
        assert loose.authorize(str(upper.resolve() / "other.txt")) == str(upper.resolve() / "other.txt")

    def test_returned_path_keeps_original_case(self, root):
        (root / "MixedCase.TXT").write_text("x", "utf-8")
        sb = make_sandbox(root, case_sensitive=False)
        assert sb.authorize(str(root / "MixedCase.TXT")).endswith("MixedCase.TXT")


# ─── Audit logging ────────────────────────────────────────────────────────

def test_denial_is_logged(root, outside, caplog):
    logger = logging.getLogger("rootguard")
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.WARNING, logger="rootguard"):
            with pytest.raises(AccessDenied):
                make_sandbox(root).authorize(str(outside / "secret.txt"))
    finally:
        logger.removeHandler(caplog.handler)
    assert any("[AUDIT_DENY]" in r.getMessage() for r in caplog.records)
