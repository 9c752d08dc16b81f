import logging

import pytest

from skill_agent.skills.load import (
    DEFAULT_TITLE,
    Skill,
    discover_skills,
    infer_title,
    load_skill_file,
    merge_skills_prefer_local,
    normalize_skill_name,
    parse_allowed_tools,
    parse_skill_markdown,
)

CHANGELOG_SKILL = """---
name: changelog
description: Generate a changelog from recent git history
allowed-tools: Bash Read Write
---

# Changelog Generator

Run `git log` and summarize.
"""


class TestSkill:
    def test_identity_is_name_and_metadata(self):
        a = Skill(name="x", title="X", description="d", source="local")
        b = Skill(name="x", title="X", description="d", source="external")

        assert a == b

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Skill(name="  ", title="t", description="d")

    def test_allowed_tools_coerced_to_tuple(self):
        skill = Skill(name="x", title="", description="", allowed_tools=["Read", " ", "Bash "])

        assert skill.allowed_tools == ("Read", "Bash")

    def test_is_frozen(self):
        skill = Skill(name="x", title="", description="")

        with pytest.raises(AttributeError):
            skill.name = "y"  # type: ignore[misc]


class TestNormalizeSkillName:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Changelog", "changelog"),
            ("PDF Tools", "pdf-tools"),
            ("--weird__name--", "weird-name"),
            ("a---b", "a-b"),
            ("", ""),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_skill_name(raw) == expected


class TestParseSkillMarkdown:
    def test_parses_frontmatter_and_body(self):
        frontmatter, body = parse_skill_markdown(CHANGELOG_SKILL)

        assert frontmatter["name"] == "changelog"
        assert body.startswith("\n# Changelog Generator")

    def test_strips_bom(self):
        frontmatter, _ = parse_skill_markdown("\ufeff" + CHANGELOG_SKILL)

        assert frontmatter is not None

    def test_no_frontmatter(self):
        frontmatter, body = parse_skill_markdown("# Title\n\nbody\n")

        assert frontmatter is None
        assert body == "# Title\n\nbody\n"

    def test_invalid_yaml_degrades_to_no_frontmatter(self, caplog):
        text = "---\nname: [unclosed\n---\n# Title\n"

        with caplog.at_level(logging.WARNING):
            frontmatter, body = parse_skill_markdown(text)

        assert frontmatter is None
        assert body == "# Title\n"

    def test_non_mapping_frontmatter(self):
        frontmatter, _ = parse_skill_markdown("---\n- a\n- b\n---\nbody\n")

        assert frontmatter is None


class TestInferTitle:
    def test_first_h1(self):
        assert infer_title("intro\n# Real Title\n") == "Real Title"

    def test_first_non_empty_line_truncated(self):
        line = "x" * 100

        assert infer_title(f"\n\n{line}\n") == "x" * 80

    def test_default(self):
        assert infer_title("\n  \n") == DEFAULT_TITLE


class TestParseAllowedTools:
    def test_whitespace_string(self):
        assert parse_allowed_tools({"allowed-tools": "Bash Read"}) == ("Bash", "Read")

    def test_list_and_alternate_keys(self):
        assert parse_allowed_tools({"allowedTools": ["read_file", ""]}) == ("read_file",)
        assert parse_allowed_tools({"allowed_tools": "glob"}) == ("glob",)

    def test_missing(self):
        assert parse_allowed_tools(None) == ()
        assert parse_allowed_tools({"name": "x"}) == ()


class TestLoadSkillFile:
    def test_loads_full_record(self, write_skill):
        path = write_skill("changelog", CHANGELOG_SKILL)

        skill = load_skill_file(path)

        assert skill.name == "changelog"
        assert skill.title == "Changelog Generator"
        assert skill.description == "Generate a changelog from recent git history"
        assert skill.allowed_tools == ("Bash", "Read", "Write")
        assert skill.body == CHANGELOG_SKILL
        assert skill.path == path

    def test_name_from_folder_without_frontmatter(self, write_skill):
        path = write_skill("PDF Tools", "# PDF helper\n")

        skill = load_skill_file(path)

        assert skill.name == "pdf-tools"
        assert skill.title == "PDF helper"
        assert skill.description == ""

    def test_mismatched_name_warns_but_loads(self, write_skill, caplog):
        path = write_skill("folder", "---\nname: other\n---\n# T\n")

        with caplog.at_level(logging.WARNING):
            skill = load_skill_file(path)

        assert skill.name == "other"
        assert "folder" in caplog.text

    def test_oversized_file_skipped(self, write_skill, monkeypatch):
        path = write_skill("big", "# big\n")
        monkeypatch.setattr(
            "skill_agent.skills.load.MAX_SKILL_FILE_SIZE", 3
        )

        assert load_skill_file(path) is None


class TestDiscoverSkills:
    def test_missing_directory(self, tmp_path):
        assert discover_skills(tmp_path / "nope") == []

    def test_recursive_and_sorted(self, tmp_path, write_skill):
        write_skill("zeta", "---\nname: zeta\n---\n# Z\n")
        write_skill("vendor/alpha", "---\nname: alpha\n---\n# A\n")

        skills = discover_skills(tmp_path / ".skills")

        assert [s.name for s in skills] == ["alpha", "zeta"]

    def test_skips_git_and_cache_dirs(self, tmp_path, write_skill):
        write_skill(".git/hooks", "---\nname: hidden\n---\n")
        write_skill(".cache/repo/skills/cached", "---\nname: cached\n---\n")
        write_skill("visible", "---\nname: visible\n---\n")

        skills = discover_skills(tmp_path / ".skills")

        assert [s.name for s in skills] == ["visible"]

    def test_duplicate_names_first_wins(self, tmp_path, write_skill, caplog):
        write_skill("a", "---\nname: dup\ndescription: first\n---\n")
        write_skill("b", "---\nname: dup\ndescription: second\n---\n")

        with caplog.at_level(logging.WARNING):
            skills = discover_skills(tmp_path / ".skills")

        assert len(skills) == 1
        assert skills[0].description == "first"
        assert "dup" in caplog.text

    def test_symlink_outside_directory_skipped(self, tmp_path, write_skill):
        outside = write_skill("outside", "---\nname: outside\n---\n", root=tmp_path / "elsewhere")
        skills_dir = tmp_path / ".skills"
        (skills_dir / "linked").mkdir(parents=True)
        try:
            (skills_dir / "linked" / "SKILL.md").symlink_to(outside)
        except OSError:
            pytest.skip("symlinks not supported")

        assert discover_skills(skills_dir) == []

    def test_source_is_recorded(self, tmp_path, write_skill):
        write_skill("x", "---\nname: x\n---\n", root=tmp_path / "ext")

        skills = discover_skills(tmp_path / "ext", source="external")

        assert skills[0].source == "external"


class TestMergeSkillsPreferLocal:
    def test_local_overrides_external(self, make_skill):
        local = [make_skill("shared", description="local")]
        external = [
            make_skill("shared", description="external"),
            make_skill("another", description="external"),
        ]

        merged = merge_skills_prefer_local(local, external)

        assert [s.name for s in merged] == ["another", "shared"]
        assert merged[1].description == "local"
