"""
Infrastructure Cost Estimator（纯函数，非 AI）。

两步：
1) 按路径把文件分类成 terraform / cloudformation / docker / kubernetes / github_actions / serverless
2) 只对 IaC 类型（terraform / cloudformation / serverless）扫描资源声明，
   每种资源类型（不是每个声明）给出一条月度成本估算；只有新增的声明才计入

可信度：
- 固定计费（负载均衡、NAT）-> high
- 按规格计费（EC2 / RDS / ECS / S3 / ElastiCache）-> medium
- 按调用量计费（Lambda）-> low

价格表是 us-east-1 按需价的粗略值，只用来给 reviewer 一个量级。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from prlens.review.models import CostEstimate
from prlens.review.models import DevOpsAnalysis

logger = logging.getLogger(__name__)

DevOpsFileType = Literal["terraform", "cloudformation", "docker", "kubernetes", "github_actions", "serverless"]

IAC_FILE_TYPES: tuple[DevOpsFileType, ...] = ("terraform", "cloudformation", "serverless")

HOURS_PER_MONTH = 730

EC2_MONTHLY_COST: dict[str, float] = {
    "t3.nano": 3.80,
    "t3.micro": 7.59,
    "t3.small": 15.18,
    "t3.medium": 30.37,
    "t3.large": 60.74,
    "t3.xlarge": 121.47,
    "t3.2xlarge": 242.94,
    "m5.large": 70.08,
    "m5.xlarge": 140.16,
    "m5.2xlarge": 280.32,
    "c5.large": 62.05,
    "c5.xlarge": 124.10,
    "r5.large": 91.98,
    "r5.xlarge": 183.96,
}
EC2_DEFAULT_SIZE = "t3.medium"

RDS_MONTHLY_COST: dict[str, float] = {
    "db.t3.micro": 12.41,
    "db.t3.small": 24.82,
    "db.t3.medium": 49.64,
    "db.t3.large": 99.28,
    "db.m5.large": 124.10,
    "db.m5.xlarge": 248.20,
    "db.r5.large": 175.20,
}
RDS_DEFAULT_SIZE = "db.t3.small"

ELASTICACHE_MONTHLY_COST: dict[str, float] = {
    "cache.t3.micro": 12.41,
    "cache.t3.small": 24.82,
    "cache.t3.medium": 49.64,
    "cache.m5.large": 113.88,
}
ELASTICACHE_DEFAULT_SIZE = "cache.t3.small"


@dataclass(frozen=True)
class ResourceRule:
    """一种资源类型：声明 pattern + （可选）规格 pattern 与价格表。"""

    resource_type: str
    declarations: tuple[str, ...]
    confidence: Literal["high", "medium", "low"]
    flat_cost: float = 0.0
    flat_details: str = ""
    size_patterns: tuple[str, ...] = ()
    size_table: dict[str, float] | None = None
    default_size: str | None = None


RESOURCE_RULES: tuple[ResourceRule, ...] = (
    ResourceRule(
        resource_type="ec2",
        declarations=(r'resource\s+"aws_instance"', r"Type:\s*['\"]?AWS::EC2::Instance\b"),
        confidence="medium",
        size_patterns=(r'instance_type\s*=\s*"([\w.]+)"', r"InstanceType:\s*['\"]?([\w.]+)"),
        size_table=EC2_MONTHLY_COST,
        default_size=EC2_DEFAULT_SIZE,
    ),
    ResourceRule(
        resource_type="lambda",
        declarations=(r'resource\s+"aws_lambda_function"', r"Type:\s*['\"]?AWS::(?:Lambda::Function|Serverless::Function)\b"),
        confidence="low",
        flat_cost=5.00,
        flat_details="Usage-based: ~$0-20/month for ~1M requests at 128MB",
    ),
    ResourceRule(
        resource_type="rds",
        declarations=(
            r'resource\s+"aws_db_instance"',
            r'resource\s+"aws_rds_cluster"',
            r"Type:\s*['\"]?AWS::RDS::DB(?:Instance|Cluster)\b",
        ),
        confidence="medium",
        size_patterns=(r'instance_class\s*=\s*"([\w.]+)"', r"DBInstanceClass:\s*['\"]?([\w.]+)"),
        size_table=RDS_MONTHLY_COST,
        default_size=RDS_DEFAULT_SIZE,
    ),
    ResourceRule(
        resource_type="s3",
        declarations=(r'resource\s+"aws_s3_bucket"', r"Type:\s*['\"]?AWS::S3::Bucket\b"),
        confidence="medium",
        flat_cost=2.30,
        flat_details="Storage-based: ~$2.30/month per 100GB (Standard tier)",
    ),
    ResourceRule(
        resource_type="ecs",
        declarations=(
            r'resource\s+"aws_ecs_cluster"',
            r'resource\s+"aws_ecs_service"',
            r"Type:\s*['\"]?AWS::ECS::(?:Cluster|Service)\b",
        ),
        confidence="medium",
        flat_cost=36.04,
        flat_details="Fargate: ~$36/month for 2 tasks (0.25 vCPU / 0.5GB)",
    ),
    ResourceRule(
        resource_type="alb",
        declarations=(
            r'resource\s+"aws_lb"',
            r'resource\s+"aws_alb"',
            r"Type:\s*['\"]?AWS::ElasticLoadBalancingV2::LoadBalancer\b",
        ),
        confidence="high",
        flat_cost=22.50,
        flat_details="Estimated $16-30/month (fixed hourly + LCU)",
    ),
    ResourceRule(
        resource_type="nat_gateway",
        declarations=(r'resource\s+"aws_nat_gateway"', r"Type:\s*['\"]?AWS::EC2::NatGateway\b"),
        confidence="high",
        flat_cost=32.85,
        flat_details="Fixed $0.045/hour (~$32.85/month) plus data processing",
    ),
    ResourceRule(
        resource_type="elasticache",
        declarations=(
            r'resource\s+"aws_elasticache_cluster"',
            r"Type:\s*['\"]?AWS::ElastiCache::CacheCluster\b",
        ),
        confidence="medium",
        size_patterns=(r'node_type\s*=\s*"([\w.]+)"', r"CacheNodeType:\s*['\"]?([\w.]+)"),
        size_table=ELASTICACHE_MONTHLY_COST,
        default_size=ELASTICACHE_DEFAULT_SIZE,
    ),
)

# 任意资源声明的起始行（terraform 的 resource 块或 CloudFormation 的 Type）
_BLOCK_START = re.compile(r'^\s*(?:resource\s+"|Type:\s)')


def classify_devops_file(path: str) -> DevOpsFileType | None:
    """按路径/文件名判断 DevOps 文件类型；不是则返回 None。"""
    lowered = path.lower()
    name = lowered.rsplit("/", 1)[-1]
    is_yaml = name.endswith(".yml") or name.endswith(".yaml")

    if ".github/workflows/" in lowered and is_yaml:
        return "github_actions"
    if name in ("serverless.yml", "serverless.yaml"):
        return "serverless"
    if name.startswith("dockerfile") or name.endswith(".dockerfile") or name.startswith("docker-compose"):
        return "docker"
    if is_yaml and ("k8s" in lowered or "kubernetes" in lowered or "/helm/" in lowered):
        return "kubernetes"
    if "cloudformation" in lowered or "cfn" in name:
        return "cloudformation"
    if name.startswith("template.") and (is_yaml or name.endswith(".json")):
        return "cloudformation"
    if name.endswith(".tf") or name.endswith(".tfvars") or name.endswith(".tf.json"):
        return "terraform"
    return None


def analyze_devops_files(files: Iterable[tuple[str, str]]) -> DevOpsAnalysis:
    """
    分析一组 `(path, diff)`，返回 DevOps 变更与成本估算。

    - 被分类的文件都计入 `file_types`（即使没有匹配到资源）
    - 同一资源类型在整个调用内只估算一次；规格取所有声明中最贵的那个
    - `total_estimated_cost` 恰好等于各估算之和
    """
    file_types: list[str] = []
    iac_files: list[list[tuple[bool, str]]] = []
    for path, diff in files:
        file_type = classify_devops_file(path=path)
        if file_type is None:
            continue
        if file_type not in file_types:
            file_types.append(file_type)
        if file_type in IAC_FILE_TYPES:
            iac_files.append(_iac_lines(diff=diff))

    estimates: list[CostEstimate] = []
    for rule in _ordered_matches(files=iac_files):
        estimates.append(_estimate(rule=rule, files=iac_files))

    total = sum(e.estimated_new_cost for e in estimates)
    if estimates:
        logger.info(f"devops cost estimated: types={[e.resource_type for e in estimates]} total={total:.2f}")
    return DevOpsAnalysis(
        has_devops_changes=bool(file_types),
        file_types=file_types,
        estimates=estimates,
        total_estimated_cost=total,
    )


def _ordered_matches(files: list[list[tuple[bool, str]]]) -> list[ResourceRule]:
    """按首次出现位置排序的资源类型（每种最多一次，只看新增的声明）。"""
    positions: list[tuple[int, int, ResourceRule]] = []
    for rule in RESOURCE_RULES:
        for file_index, lines in enumerate(files):
            first = next(iter(_added_declarations(rule=rule, lines=lines)), None)
            if first is not None:
                positions.append((file_index, first, rule))
                break
    positions.sort(key=lambda p: (p[0], p[1]))
    return [rule for _, _, rule in positions]


def _added_declarations(rule: ResourceRule, lines: list[tuple[bool, str]]) -> list[int]:
    return [
        index
        for index, (added, text) in enumerate(lines)
        if added and any(re.search(p, text) for p in rule.declarations)
    ]


def _declaration_block(lines: list[tuple[bool, str]], start: int) -> str:
    """从声明行到下一个资源声明（不含）之间的文本，新增行和上下文行都算。"""
    end = start + 1
    while end < len(lines) and not _BLOCK_START.search(lines[end][1]):
        end += 1
    return "\n".join(text for _, text in lines[start:end])


def _estimate(rule: ResourceRule, files: list[list[tuple[bool, str]]]) -> CostEstimate:
    if rule.size_table is None:
        return CostEstimate(
            resource_type=rule.resource_type,
            estimated_new_cost=rule.flat_cost,
            confidence=rule.confidence,
            details=rule.flat_details,
        )

    # 规格只从新增资源自己的块里读，避免把未改动资源的规格算进来
    blocks = [
        _declaration_block(lines=lines, start=index)
        for lines in files
        for index in _added_declarations(rule=rule, lines=lines)
    ]
    sizes = [
        m.group(1).lower()
        for block in blocks
        for p in rule.size_patterns
        for m in re.finditer(p, block, flags=re.MULTILINE)
    ]
    known = [s for s in sizes if s in rule.size_table]
    size = max(known, key=lambda s: rule.size_table[s]) if known else rule.default_size
    cost = rule.size_table[size]
    note = "" if known or not sizes else f" (unknown size {sizes[0]}, assumed {size})"
    return CostEstimate(
        resource_type=rule.resource_type,
        estimated_new_cost=cost,
        confidence=rule.confidence,
        details=f"{size}: ~${cost:.2f}/month on-demand ({HOURS_PER_MONTH} hours){note}",
    )


def _iac_lines(diff: str) -> list[tuple[bool, str]]:
    """去掉删除行、diff 头和 hunk 头，返回 `(是否新增, 内容)`。"""
    kept: list[tuple[bool, str]] = []
    for line in diff.splitlines():
        if line.startswith(("+++", "---", "diff --git", "@@")):
            continue
        if line.startswith("-"):
            continue
        if line.startswith("+"):
            kept.append((True, line[1:]))
        else:
            kept.append((False, line[1:] if line.startswith(" ") else line))
    return kept
