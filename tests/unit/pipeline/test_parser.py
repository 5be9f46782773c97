"""Unit tests for the pipeline document parser."""

from __future__ import annotations

from pathlib import Path

import pytest

from pipedeps.errors import ParseError
from pipedeps.pipeline.parser import (
    is_pipeline_file,
    looks_like_pipeline,
    parse_document,
    parse_pipeline_file,
    parse_task_string,
    parse_template_reference,
)
from pipedeps.pipeline.types import TaskReference, TemplateReference

STAGED_PIPELINE = """
trigger:
  - main
stages:
  - stage: Build
    jobs:
      - job: Compile
        steps:
          - task: NodeTool@0
            displayName: Install Node
            inputs:
              versionSpec: '18.x'
          - script: npm ci
          - task: PowerShell@2
  - stage: Deploy
    jobs:
      - deployment: Release
        strategy:
          runOnce:
            preDeploy:
              steps:
                - task: DownloadSecureFile@1
            deploy:
              steps:
                - task: AzureCLI@2
            on:
              failure:
                steps:
                  - task: MyTask
"""


def _identifiers(document) -> list[str]:
    return [task.identifier for task in document.tasks]


class TestParseDocument:
    """Task and template extraction."""

    def test_finds_tasks_at_every_depth_in_document_order(self) -> None:
        document = parse_document(STAGED_PIPELINE)

        assert _identifiers(document) == [
            "NodeTool",
            "PowerShell",
            "DownloadSecureFile",
            "AzureCLI",
            "MyTask",
        ]

    def test_splits_versions_and_keeps_display_metadata(self) -> None:
        document = parse_document(STAGED_PIPELINE)
        node, _, _, _, custom = document.tasks

        assert node.version_spec == "0"
        assert node.display_name == "Install Node"
        assert node.inputs == {"versionSpec": "18.x"}
        assert custom.version_spec is None
        assert node.source_file is None

    def test_inputs_do_not_affect_identity(self) -> None:
        a = TaskReference(identifier="PowerShell", version_spec="2", inputs={"x": 1})
        b = TaskReference(identifier="PowerShell", version_spec="2", inputs={"x": 2})
        assert a == b

    def test_collects_template_references_without_tasks(self) -> None:
        document = parse_document(
            """
steps:
  - template: templates/build.yml
    parameters:
      configuration: Release
  - task: CmdLine@2
jobs:
  - template: jobs/test.yml
"""
        )

        assert [t.path for t in document.templates] == ["templates/build.yml", "jobs/test.yml"]
        assert _identifiers(document) == ["CmdLine"]
        assert document.extends is None

    def test_tasks_inside_template_parameters_are_found(self) -> None:
        document = parse_document(
            """
steps:
  - template: steps/wrap.yml
    parameters:
      preSteps:
        - task: Npm@1
      postSteps:
        - task: PublishPipelineArtifact@1
"""
        )

        assert _identifiers(document) == ["Npm", "PublishPipelineArtifact"]
        assert document.templates == (TemplateReference(path="steps/wrap.yml"),)

    def test_extends_is_separate_from_templates(self) -> None:
        document = parse_document(
            """
extends:
  template: base.yml
  parameters:
    buildSteps:
      - task: DotNetCoreCLI@2
"""
        )

        assert document.extends == TemplateReference(path="base.yml")
        assert document.templates == ()
        assert _identifiers(document) == ["DotNetCoreCLI"]

    def test_extends_with_repository(self) -> None:
        document = parse_document(
            """
resources:
  repositories:
    - repository: templates
      type: github
      name: contoso/pipeline-templates
extends:
  template: pipelines/secure.yml@contoso/pipeline-templates
"""
        )

        assert document.extends == TemplateReference(
            path="pipelines/secure.yml",
            repository="contoso/pipeline-templates",
            ref="refs/heads/main",
        )

    @pytest.mark.parametrize("text", ["", "# only a comment\n", "42\n", "just a string\n"])
    def test_empty_or_scalar_documents_yield_nothing(self, text: str) -> None:
        document = parse_document(text)

        assert document.tasks == ()
        assert document.templates == ()
        assert document.extends is None

    def test_empty_task_value_is_not_a_task(self) -> None:
        document = parse_document("steps:\n  - task: ''\n  - task: '   '\n  - task: Bash@3\n")
        assert _identifiers(document) == ["Bash"]

    def test_malformed_yaml_raises_parse_error_with_line(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            parse_document("steps:\n  - task: A@1\n    inputs: [unclosed\n", path="broken.yml")

        assert excinfo.value.path == "broken.yml"
        assert excinfo.value.line is not None
        assert "broken.yml" in str(excinfo.value)

    def test_recursive_alias_is_rejected(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            parse_document("steps: &s\n  - task: A@1\n  - *s\n", path="loop.yml")

        assert excinfo.value.line == 3
        assert "alias" in str(excinfo.value)

    def test_alias_chain_is_rejected(self) -> None:
        text = "a: &a [{task: A@1}, {task: A@1}]\n"
        text += "".join(f"{chr(98 + i)}: &{chr(98 + i)} [*{chr(97 + i)}, *{chr(97 + i)}]\n" for i in range(6))

        with pytest.raises(ParseError):
            parse_document(text)

    def test_anchor_without_alias_is_accepted(self) -> None:
        document = parse_document("steps: &s\n  - task: A@1\n")
        assert _identifiers(document) == ["A"]

    def test_excessive_nesting_raises_parse_error(self) -> None:
        text = "steps: " + "[" * 5000 + "]" * 5000 + "\n"

        with pytest.raises(ParseError) as excinfo:
            parse_document(text, path="deep.yml")

        assert "nested too deeply" in str(excinfo.value)
        assert looks_like_pipeline(text) is False

    def test_deeply_nested_mapping(self) -> None:
        depth = 100
        text = "".join("  " * i + "a:\n" for i in range(depth))
        text += "  " * depth + "task: Deep@1\n"

        document = parse_document(text)

        assert _identifiers(document) == ["Deep"]


class TestParseTaskString:
    def test_name_and_version(self) -> None:
        assert parse_task_string("NodeTool@0") == ("NodeTool", "0")

    def test_name_only(self) -> None:
        assert parse_task_string("MyTask") == ("MyTask", None)

    def test_empty_version_is_absent(self) -> None:
        assert parse_task_string("MyTask@") == ("MyTask", None)

    def test_qualified_identifier(self) -> None:
        assert parse_task_string("qetza.replacetokens.replacetokens-task.replacetokens@6") == (
            "qetza.replacetokens.replacetokens-task.replacetokens",
            "6",
        )


class TestParseTemplateReference:
    def test_bare_string(self) -> None:
        assert parse_template_reference("templates/a.yml") == TemplateReference(path="templates/a.yml")

    def test_explicit_repository_and_ref(self) -> None:
        reference = parse_template_reference(
            {"template": "a.yml", "repository": "contoso/shared", "ref": "refs/tags/v1"}
        )
        assert reference == TemplateReference(path="a.yml", repository="contoso/shared", ref="refs/tags/v1")

    def test_repository_defaults_ref_to_main(self) -> None:
        reference = parse_template_reference({"template": "a.yml", "repository": "contoso/shared"})
        assert reference.ref == "refs/heads/main"

    def test_path_at_alias(self) -> None:
        reference = parse_template_reference({"template": "steps/build.yml@templates"})
        assert reference == TemplateReference(
            path="steps/build.yml", repository="templates", ref="refs/heads/main"
        )

    def test_self_alias_is_local(self) -> None:
        reference = parse_template_reference({"template": "steps/build.yml@self"})
        assert reference == TemplateReference(path="steps/build.yml")

    @pytest.mark.parametrize("value", [None, 3, [], {"template": ""}, {"template": None}, "  "])
    def test_unusable_values(self, value) -> None:
        assert parse_template_reference(value) is None


class TestPipelineClassifier:
    def test_recognizes_pipeline_keys(self) -> None:
        assert looks_like_pipeline("trigger: none\nsteps:\n  - script: echo hi\n")
        assert looks_like_pipeline("extends:\n  template: base.yml\n")

    def test_rejects_other_yaml(self) -> None:
        assert not looks_like_pipeline("name: my-chart\nversion: 1.0.0\n")
        assert not looks_like_pipeline("- a\n- b\n")
        assert not looks_like_pipeline("key: [unclosed\n")

    def test_file_variant(self, tmp_path: Path) -> None:
        pipeline = tmp_path / "azure-pipelines.yml"
        pipeline.write_text("pool:\n  vmImage: ubuntu-latest\n", encoding="utf-8")

        assert is_pipeline_file(pipeline)
        assert not is_pipeline_file(tmp_path / "missing.yml")


def test_parse_pipeline_file_reads_from_disk(tmp_path: Path) -> None:
    pipeline = tmp_path / "azure-pipelines.yml"
    pipeline.write_text("steps:\n  - task: Bash@3\n", encoding="utf-8")

    document = parse_pipeline_file(pipeline)

    assert _identifiers(document) == ["Bash"]


def test_parse_pipeline_file_missing_raises(tmp_path: Path) -> None:
    with pytest.raises(ParseError):
        parse_pipeline_file(tmp_path / "nope.yml")
