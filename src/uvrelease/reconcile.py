# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Keep dependents' requirements in step with a new version.

When ``core`` moves to a new version, every member that requires
``core`` is checked against the package's ``dependent-version`` policy::

    policy    requirement matches      requirement excludes new version
    ────────  ───────────────────────  ─────────────────────────────────
    ignore    nothing                  nothing
    warn      nothing                  warning
    error     nothing                  warning, run fails after all checks
    fix       nothing                  rewrite the requirement
    upgrade   rewrite the requirement  rewrite the requirement

Error-policy failures are collected across every dependent and raised
once as ``UR-DEPENDENT-VERSION-CONFLICT``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from packaging.version import Version

from uvrelease.config import DependentVersion
from uvrelease.errors import E, UvReleaseError
from uvrelease.logging import get_logger
from uvrelease.manifest import set_dependency_version
from uvrelease.plan import Dependent, ReleasePlan
from uvrelease.versions import requirement_matches, set_requirement

logger = get_logger(__name__)


class ReconcileAction(str, Enum):
    """What reconciliation decided for one dependent."""

    NOOP = 'noop'
    WARN = 'warn'
    FAIL = 'fail'
    REWRITE = 'rewrite'


@dataclass(frozen=True)
class ReconciliationOutcome:
    """The decision for one ``(dependent, requirement)`` pair.

    Attributes:
        action: The decided action.
        dependent: The dependent it applies to.
        new_requirement: Requirement to write for ``REWRITE``.
    """

    action: ReconcileAction
    dependent: Dependent
    new_requirement: str | None = None


def reconcile_dependent(policy: DependentVersion, dependent: Dependent, version: Version) -> ReconciliationOutcome:
    """Apply ``policy`` to one dependent. Pure: nothing is logged or written."""
    if policy is DependentVersion.IGNORE:
        return ReconciliationOutcome(ReconcileAction.NOOP, dependent)

    matches = requirement_matches(dependent.requirement, version)
    if policy is DependentVersion.UPGRADE or (policy is DependentVersion.FIX and not matches):
        new_req = set_requirement(dependent.requirement, version)
        if new_req is None:
            return ReconciliationOutcome(ReconcileAction.NOOP, dependent)
        return ReconciliationOutcome(ReconcileAction.REWRITE, dependent, new_req)
    if matches:
        return ReconciliationOutcome(ReconcileAction.NOOP, dependent)
    if policy is DependentVersion.WARN:
        return ReconciliationOutcome(ReconcileAction.WARN, dependent)
    return ReconciliationOutcome(ReconcileAction.FAIL, dependent)


def update_dependent_versions(plan: ReleasePlan, version: Version, *, dry_run: bool = False) -> list[ReconciliationOutcome]:
    """Reconcile every dependent of ``plan`` against ``version``.

    Rewrites are written to the dependents' manifests unless ``dry_run``.

    Returns:
        One outcome per dependent, in order.

    Raises:
        UvReleaseError: ``UR-DEPENDENT-VERSION-CONFLICT`` after all
            dependents were checked, if any failed under the error policy.
    """
    policy = plan.config.dependent_version or DependentVersion.FIX
    outcomes: list[ReconciliationOutcome] = []
    failed: list[ReconciliationOutcome] = []

    for dependent in plan.dependents:
        outcome = reconcile_dependent(policy, dependent, version)
        outcomes.append(outcome)
        if outcome.action in (ReconcileAction.WARN, ReconcileAction.FAIL):
            logger.warning(
                'incompatible_dependent',
                dependent=dependent.package.name,
                package=plan.name,
                requirement=dependent.requirement,
                version=str(version),
            )
            if outcome.action is ReconcileAction.FAIL:
                failed.append(outcome)
        elif outcome.action is ReconcileAction.REWRITE and outcome.new_requirement is not None:
            logger.info(
                'fix_dependent' if policy is DependentVersion.FIX else 'upgrade_dependent',
                dependent=dependent.package.name,
                package=plan.name,
                old=dependent.requirement,
                new=outcome.new_requirement,
            )
            set_dependency_version(
                dependent.package.manifest_path,
                plan.name,
                outcome.new_requirement,
                section=dependent.dependency.section,
                dry_run=dry_run,
            )

    if failed:
        listing = '; '.join(f'{o.dependent.package.name} requires {o.dependent.requirement}' for o in failed)
        raise UvReleaseError(
            code=E.DEPENDENT_VERSION_CONFLICT,
            message=f'{plan.name} {version} is excluded by dependents: {listing}',
            hint='Update the listed requirements or use --dependent-version fix.',
        )
    return outcomes


__all__ = [
    'ReconcileAction',
    'ReconciliationOutcome',
    'reconcile_dependent',
    'update_dependent_versions',
]
