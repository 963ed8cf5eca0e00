from pathlib import Path
from unittest.mock import MagicMock

import pytest

from reforge.core.exceptions import PathTypeConflict
from reforge.core.models import Aborted, ResolvedPlan
from reforge.deploy.archive import TemplateArchive
from reforge.deploy.conflicts import resolve_conflicts
from reforge.deploy.planner import plan_deployment
from reforge.deploy.variants import resolve_variant


@pytest.fixture
def conflicting_plan(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / "CLAUDE.md").write_text("mine")
    with TemplateArchive.open(pack_bytes) as archive:
        return plan_deployment(archive, resolve_variant("claude"), tmp_path)


@pytest.fixture
def clean_plan(tmp_path: Path, pack_bytes: bytes):
    with TemplateArchive.open(pack_bytes) as archive:
        return plan_deployment(archive, resolve_variant("claude"), tmp_path / "fresh")


def test_no_conflicts_never_asks(clean_plan):
    confirm = MagicMock(return_value=False)
    outcome = resolve_conflicts(clean_plan, confirm)
    assert isinstance(outcome, ResolvedPlan)
    assert outcome.overwrite is False
    confirm.assert_not_called()


def test_confirm_called_once_with_conflicts(conflicting_plan, tmp_path: Path):
    confirm = MagicMock(return_value=True)
    outcome = resolve_conflicts(conflicting_plan, confirm)

    assert isinstance(outcome, ResolvedPlan)
    assert outcome.overwrite is True
    confirm.assert_called_once()
    summary = confirm.call_args.args[0]
    assert summary.paths == [tmp_path / "CLAUDE.md"]
    assert summary.count == 1
    assert summary.total_files == 3


def test_decline_aborts(conflicting_plan, tmp_path: Path):
    outcome = resolve_conflicts(conflicting_plan, lambda summary: False)
    assert isinstance(outcome, Aborted)
    assert outcome.conflicts == [tmp_path / "CLAUDE.md"]


@pytest.mark.parametrize("interrupt", [KeyboardInterrupt, EOFError])
def test_interrupted_prompt_is_decline(conflicting_plan, interrupt):
    confirm = MagicMock(side_effect=interrupt)
    outcome = resolve_conflicts(conflicting_plan, confirm)
    assert isinstance(outcome, Aborted)
    confirm.assert_called_once()


def test_missing_confirm_is_decline(conflicting_plan):
    assert isinstance(resolve_conflicts(conflicting_plan, None), Aborted)


def test_force_skips_confirmation(conflicting_plan):
    confirm = MagicMock(return_value=False)
    outcome = resolve_conflicts(conflicting_plan, confirm, force=True)
    assert isinstance(outcome, ResolvedPlan)
    assert outcome.overwrite is True
    confirm.assert_not_called()


def test_path_type_conflict_is_not_overridable(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / ".claude").write_text("file where a directory belongs")
    with TemplateArchive.open(pack_bytes) as archive:
        plan = plan_deployment(archive, resolve_variant("claude"), tmp_path)

    confirm = MagicMock(return_value=True)
    with pytest.raises(PathTypeConflict) as exc_info:
        resolve_conflicts(plan, confirm, force=True)
    assert len(exc_info.value.paths) == 2
    confirm.assert_not_called()
