"""
Unit tests for the versioning engine.
"""

import pytest

from product_house.core.constants import ChangeKind, MasterplanFormat, SectionMatchStrategy
from product_house.core.exceptions import NotFoundError, ValidationError, VersionNotFoundError
from product_house.domain.context import User
from product_house.domain.masterplan import Masterplan, MasterplanSection
from product_house.masterplan.generator import MasterplanGenerator
from product_house.masterplan.versioning import (
    VersioningEngine,
    apply_changes,
    bump_version,
    diff_sections,
    find_version,
    latest_version,
    replay_history,
)


def _section(id: str, content: str, title: str = "", level: int = 1) -> MasterplanSection:
    return MasterplanSection(id=id, title=title or id.upper(), level=level, content=content)


def _edited(masterplan: Masterplan, **contents: str) -> list[MasterplanSection]:
    return [
        s.model_copy(update={"content": contents[s.id]}) if s.id in contents else s
        for s in masterplan.sections
    ]


class TestVersionNumbers:
    def test_bump_minor(self) -> None:
        assert bump_version("1.0") == "1.1"
        assert bump_version("1.9") == "1.10"
        assert bump_version("2.4") == "2.5"

    @pytest.mark.parametrize("bad", ["1", "1.2.3", "a.b", "", "1.-1"])
    def test_malformed_version(self, bad: str) -> None:
        with pytest.raises(ValidationError):
            bump_version(bad)

    def test_latest_version_compares_numerically(self) -> None:
        assert latest_version(["1.9", "1.10", "1.2"]) == "1.10"
        assert latest_version([]) is None


class TestDiff:
    def test_id_strategy(self) -> None:
        old = [_section("a", "1"), _section("b", "2"), _section("c", "3")]
        new = [_section("a", "1"), _section("c", "3!"), _section("d", "4")]

        changes = diff_sections(old, new)

        assert [(c.section_id, c.kind) for c in changes] == [
            ("c", ChangeKind.MODIFIED),
            ("d", ChangeKind.ADDED),
            ("b", ChangeKind.REMOVED),
        ]
        assert changes[0].old_content == "3"
        assert changes[0].new_content == "3!"
        assert changes[1].old_content is None
        assert changes[2].old_content == "2"

    def test_reorder_is_not_a_change_by_id(self) -> None:
        old = [_section("a", "1"), _section("b", "2")]
        new = [_section("b", "2"), _section("a", "1")]

        assert diff_sections(old, new) == []

    def test_position_strategy_uses_old_ids(self) -> None:
        old = [_section("a", "1"), _section("b", "2")]
        new = [_section("b", "2"), _section("a", "1"), _section("z", "9")]

        changes = diff_sections(old, new, SectionMatchStrategy.POSITION)

        assert [(c.section_id, c.kind, c.new_content) for c in changes] == [
            ("a", ChangeKind.MODIFIED, "2"),
            ("b", ChangeKind.MODIFIED, "1"),
            ("z", ChangeKind.ADDED, "9"),
        ]

    def test_position_strategy_surplus_old_removed(self) -> None:
        old = [_section("a", "1"), _section("b", "2")]

        changes = diff_sections(old, [_section("a", "1")], SectionMatchStrategy.POSITION)

        assert [(c.section_id, c.kind) for c in changes] == [("b", ChangeKind.REMOVED)]


class TestCreateVersion:
    def test_concrete_scenario(self, engine: VersioningEngine, user: User) -> None:
        masterplan = Masterplan(
            id="mp-1",
            conversation_id="c",
            title="T",
            version="2.4",
            sections=[_section("s1", "A")],
        )

        updated, version = engine.create_version(masterplan, [_section("s1", "B")], user)

        assert updated.version == "2.5"
        assert updated.get_section("s1").content == "B"
        assert version is not None
        assert version.version == "2.5"
        assert [(c.section_id, c.old_content, c.new_content) for c in version.changes] == [
            ("s1", "A", "B"),
        ]
        assert version.user_id == user.id
        assert version.user_name == "Alice"

    def test_input_not_mutated(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        before = sample_masterplan.model_dump()

        engine.create_version(sample_masterplan, _edited(sample_masterplan, s1="changed"), user)

        assert sample_masterplan.model_dump() == before

    def test_formats_regenerated_with_same_keys(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        result = engine.create_version(sample_masterplan, _edited(sample_masterplan, s3="New stack."), user)

        assert list(result.masterplan.formats) == [MasterplanFormat.MARKDOWN]
        markdown = result.masterplan.formats[MasterplanFormat.MARKDOWN]
        assert "New stack." in markdown
        assert "Version 1.1" in markdown
        assert result.masterplan.updated_at > sample_masterplan.updated_at

    def test_k_saves_give_minor_k(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        masterplan = sample_masterplan
        for k in range(1, 4):
            masterplan, _ = engine.create_version(masterplan, _edited(masterplan, s1=f"edit {k}"), user)

        assert masterplan.version == "1.3"

    def test_identical_sections_record_empty_version(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        updated, version = engine.create_version(sample_masterplan, sample_masterplan.sections, user)

        assert version is not None
        assert version.changes == ()
        assert updated.version == "1.1"

        restored = engine.restore_version(updated, version)
        assert [s.content for s in restored.sections] == [s.content for s in updated.sections]

    def test_empty_save_suppressed_when_configured(self, sample_masterplan: Masterplan, user: User) -> None:
        engine = VersioningEngine(generator=MasterplanGenerator(), record_empty_versions=False)

        result = engine.create_version(sample_masterplan, sample_masterplan.sections, user)

        assert not result.recorded
        assert result.masterplan is sample_masterplan

    def test_duplicate_ids_rejected(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        with pytest.raises(ValidationError):
            engine.create_version(sample_masterplan, [_section("x", "1"), _section("x", "2")], user)

    def test_history_head_keeps_numbers_increasing(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        result = engine.create_version(
            sample_masterplan,
            _edited(sample_masterplan, s1="after restore"),
            user,
            history_head="1.7",
        )

        assert result.masterplan.version == "1.8"


class TestRestore:
    def test_restore_sets_recorded_content(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        v1_1, record = engine.create_version(sample_masterplan, _edited(sample_masterplan, s1="B"), user)
        v1_2, _ = engine.create_version(v1_1, _edited(v1_1, s1="C"), user)

        restored = engine.restore_version(v1_2, record)

        assert restored.get_section("s1").content == "B"
        assert restored.version == "1.1"
        assert "B" in restored.formats[MasterplanFormat.MARKDOWN]

    def test_restore_ignores_prior_content(self, engine: VersioningEngine, user: User) -> None:
        masterplan = Masterplan(id="mp-1", conversation_id="c", title="T", sections=[_section("s1", "A")])
        _, record = engine.create_version(masterplan, [_section("s1", "B")], user)

        for prior in ("A", "Z", ""):
            live = masterplan.model_copy(update={"sections": [_section("s1", prior)]})
            assert engine.restore_version(live, record).get_section("s1").content == "B"

    def test_restore_skips_missing_sections(self, engine: VersioningEngine, user: User) -> None:
        masterplan = Masterplan(
            id="mp-1",
            conversation_id="c",
            title="T",
            sections=[_section("s1", "A"), _section("s2", "X")],
        )
        _, record = engine.create_version(masterplan, [_section("s1", "B"), _section("s2", "Y")], user)
        live = masterplan.model_copy(update={"sections": [_section("s1", "A")]})

        restored = engine.restore_version(live, record)

        assert [s.id for s in restored.sections] == ["s1"]

    def test_restore_rejects_foreign_version(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        other = sample_masterplan.model_copy(update={"id": "mp-other"})
        _, record = engine.create_version(other, _edited(other, s1="x"), user)

        with pytest.raises(ValidationError):
            engine.restore_version(sample_masterplan, record)


class TestRefinement:
    def test_apply_ai_refinement(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        result = engine.apply_ai_refinement(sample_masterplan, "s2", "- Better roadmaps", user)

        assert result.masterplan.get_section("s2").content == "- Better roadmaps"
        assert result.version.changed_section_ids == ["s2"]
        assert result.masterplan.version == "1.1"

    def test_unknown_section(self, engine: VersioningEngine, sample_masterplan: Masterplan, user: User) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            engine.apply_ai_refinement(sample_masterplan, "missing", "x", user)

        assert exc_info.value.resource_id == "missing"


class TestHistory:
    def test_replay_reproduces_live_sections(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        history = [engine.initial_version(sample_masterplan, user)]
        masterplan = sample_masterplan
        edits = [
            _edited(masterplan, s1="one"),
            _edited(masterplan, s1="one", s3="three"),
        ]
        for sections in edits:
            masterplan, version = engine.create_version(masterplan, sections, user)
            history.append(version)
        masterplan, version = engine.create_version(
            masterplan,
            [s for s in masterplan.sections if s.id != "s2"] + [_section("s4", "four", "Risks", 2)],
            user,
        )
        history.append(version)

        assert replay_history(history) == masterplan.sections

    def test_replay_up_to_version(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        initial = engine.initial_version(sample_masterplan, user)
        _, second = engine.create_version(sample_masterplan, _edited(sample_masterplan, s1="one"), user)

        assert replay_history([initial, second], upto_version_id=initial.id) == sample_masterplan.sections

    def test_initial_version_lists_all_sections_added(
        self,
        engine: VersioningEngine,
        sample_masterplan: Masterplan,
        user: User,
    ) -> None:
        initial = engine.initial_version(sample_masterplan, user)

        assert initial.version == "1.0"
        assert all(c.kind == ChangeKind.ADDED for c in initial.changes)
        assert initial.changed_section_ids == ["s1", "s2", "s3"]

    def test_find_version(self, engine: VersioningEngine, sample_masterplan: Masterplan, user: User) -> None:
        initial = engine.initial_version(sample_masterplan, user)

        assert find_version([initial], initial.id) is initial
        with pytest.raises(VersionNotFoundError):
            find_version([initial], "ver_missing")

    def test_apply_changes_appends_missing_added_section(self) -> None:
        changes = diff_sections([], [_section("n", "new", "New", 2)])

        result = apply_changes([_section("a", "1")], changes)

        assert [(s.id, s.title, s.level) for s in result] == [("a", "A", 1), ("n", "New", 2)]
