from __future__ import annotations

from prlens.review.devops_cost import EC2_MONTHLY_COST
from prlens.review.devops_cost import analyze_devops_files
from prlens.review.devops_cost import classify_devops_file


def _added(*lines: str) -> str:
    return "\n".join(["diff --git a/x b/x", "--- a/x", "+++ b/x", "@@ -0,0 +1 @@", *[f"+{l}" for l in lines]])


def test_classify_devops_file() -> None:
    assert classify_devops_file(path="infra/main.tf") == "terraform"
    assert classify_devops_file(path=".github/workflows/ci.yml") == "github_actions"
    assert classify_devops_file(path="serverless.yml") == "serverless"
    assert classify_devops_file(path="Dockerfile") == "docker"
    assert classify_devops_file(path="deploy/k8s/app.yaml") == "kubernetes"
    assert classify_devops_file(path="stack/cloudformation/app.yml") == "cloudformation"
    assert classify_devops_file(path="src/app.py") is None


def test_two_instances_yield_one_ec2_estimate() -> None:
    diff = _added(
        'resource "aws_instance" "a" {',
        '  instance_type = "t3.micro"',
        "}",
        'resource "aws_instance" "b" {',
        '  instance_type = "t3.large"',
        "}",
    )
    analysis = analyze_devops_files(files=[("infra/main.tf", diff)])
    assert analysis.has_devops_changes
    assert [e.resource_type for e in analysis.estimates] == ["ec2"]
    # 取最贵的规格
    assert analysis.estimates[0].estimated_new_cost == EC2_MONTHLY_COST["t3.large"]
    assert analysis.total_estimated_cost == analysis.estimates[0].estimated_new_cost


def test_total_is_sum_of_estimates() -> None:
    diff = _added(
        'resource "aws_s3_bucket" "logs" {}',
        'resource "aws_lambda_function" "fn" {}',
        'resource "aws_nat_gateway" "nat" {}',
    )
    analysis = analyze_devops_files(files=[("main.tf", diff)])
    assert [e.resource_type for e in analysis.estimates] == ["s3", "lambda", "nat_gateway"]
    assert analysis.total_estimated_cost == sum(e.estimated_new_cost for e in analysis.estimates)
    assert {e.resource_type: e.confidence for e in analysis.estimates} == {
        "s3": "medium",
        "lambda": "low",
        "nat_gateway": "high",
    }


def test_unknown_size_falls_back_to_default() -> None:
    diff = _added('resource "aws_instance" "a" {', '  instance_type = "z9.huge"', "}")
    estimate = analyze_devops_files(files=[("main.tf", diff)]).estimates[0]
    assert estimate.estimated_new_cost == EC2_MONTHLY_COST["t3.medium"]
    assert "unknown size z9.huge" in estimate.details


def test_removed_resources_are_not_estimated() -> None:
    diff = "\n".join(["--- a/main.tf", "+++ b/main.tf", "@@ -1 +0,0 @@", '-resource "aws_instance" "gone" {}'])
    analysis = analyze_devops_files(files=[("main.tf", diff)])
    assert analysis.has_devops_changes
    assert analysis.estimates == []
    assert analysis.total_estimated_cost == 0


def test_non_iac_devops_files_only_classified() -> None:
    diff = _added('resource "aws_instance" "a" {}')
    analysis = analyze_devops_files(files=[("Dockerfile", diff), ("src/app.py", diff)])
    assert analysis.file_types == ["docker"]
    assert analysis.estimates == []


def test_no_devops_files() -> None:
    analysis = analyze_devops_files(files=[])
    assert not analysis.has_devops_changes
    assert analysis.total_estimated_cost == 0


def test_context_only_resource_is_not_estimated() -> None:
    diff = "\n".join(
        [
            "--- a/main.tf",
            "+++ b/main.tf",
            "@@ -1,3 +1,4 @@",
            ' resource "aws_instance" "web" {',
            '   instance_type = "m5.xlarge"',
            '+  tags = { Name = "web" }',
            " }",
        ]
    )
    analysis = analyze_devops_files(files=[("main.tf", diff)])
    assert analysis.has_devops_changes
    assert analysis.estimates == []
    assert analysis.total_estimated_cost == 0


def test_size_read_only_from_added_resource_block() -> None:
    diff = "\n".join(
        [
            "--- a/main.tf",
            "+++ b/main.tf",
            "@@ -1,3 +1,6 @@",
            ' resource "aws_instance" "web" {',
            '   instance_type = "m5.xlarge"',
            " }",
            '+resource "aws_instance" "worker" {',
            '+  instance_type = "t3.micro"',
            "+}",
        ]
    )
    estimate = analyze_devops_files(files=[("main.tf", diff)]).estimates[0]
    assert estimate.resource_type == "ec2"
    assert estimate.estimated_new_cost == EC2_MONTHLY_COST["t3.micro"]
