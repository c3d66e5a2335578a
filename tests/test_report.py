from tfpr.commands import Command, parse_command
from tfpr.report import Report, build_report, hint_lines, render_comment


def test_body_without_hints():
    body = build_report("No changes.", include_hints=False, workspace="dev", directory="infra")

    assert body == (
        "<details><summary>Show output</summary>\n"
        "<p>\n"
        "\n"
        "```diff\n"
        "No changes.\n"
        "```\n"
        "</p></details>\n"
        "<hr/>\n"
        "<h6>Directory: infra</h6>\n"
        "<h6>Workspace: dev</h6>"
    )


def test_body_with_hints_lists_all_four_commands():
    body = build_report("  + resource", include_hints=True, workspace="staging", directory="infra/network")

    hints = [line for line in body.splitlines() if line.startswith("`terraform ")]
    assert hints == [
        "`terraform plan -w staging -d infra/network`",
        "`terraform apply -w staging -d infra/network`",
        "`terraform plan-destroy -w staging -d infra/network`",
        "`terraform apply-destroy -w staging -d infra/network`",
    ]
    assert body.index("```\n") < body.index(hints[0]) < body.index("</p></details>")
    assert body.endswith("<h6>Directory: infra/network</h6>\n<h6>Workspace: staging</h6>")


def test_output_is_formatted_inside_fence():
    body = build_report("  + resource", include_hints=False, workspace="dev", directory=".")
    assert "```diff\n+   resource\n```" in body


def test_hint_lines_follow_context():
    assert all("-w qa -d ." in line for line in hint_lines("qa", "."))


def test_render_comment():
    report = Report(title="`plan` succeeded", body="BODY", success=True)
    assert render_comment(report) == "## `plan` succeeded: \n\nBODY"
    assert report.conclusion == "success"
    assert Report(title="x", body="", success=False).conclusion == "failure"


def test_hint_lines_quote_paths_so_they_parse_back():
    for line, command in zip(hint_lines("eu west", "envs/eu west"), Command):
        parsed = parse_command(line.strip("`"))

        assert parsed.command is command
        assert parsed.directory == "envs/eu west"
        assert parsed.workspace == "eu west"
