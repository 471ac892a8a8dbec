"""Branch-coverage gap analysis prompt.

Renders a ``CoverageReport`` (already enriched with source and test text)
into the request sent to the LLM. Only the worst ``MAX_FILES_PER_REQUEST``
files are included; the rest are dropped to bound the request size.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import TYPE_CHECKING

from branchgap.adapters.coverage.base import BRANCH_COVERAGE_THRESHOLD
from branchgap.llm.engine import LLMMessage
from branchgap.llm.prompts.base import PromptSection, RenderedPrompt, join_sections

if TYPE_CHECKING:
    from branchgap.adapters.coverage.base import CoverageReport, UncoveredFile

MAX_FILES_PER_REQUEST = 5
"""Hard cap on files per request, worst coverage first."""

MAX_SAMPLE_LINES = 10
MAX_TEST_CODE_CHARS = 3000

_FENCE_LANGUAGES = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

SYSTEM_INSTRUCTION = f"""You are a senior software test engineer specialising in branch coverage \
analysis, edge cases, alternative paths (if/else, switch, loops) and complex boolean conditions \
(&&, ||, ternaries).

You will receive source files with LOW BRANCH COVERAGE (below {BRANCH_COVERAGE_THRESHOLD:.0f}%), \
together with:
1. The full source code of each file
2. The existing tests, when one was found
3. Branch coverage metrics (e.g. 80% = 4/5 branches covered)
4. The specific branch groups that have alternatives never taken

Your task is to identify EXACTLY:
1. Which branches or conditions are not exercised by the tests
2. Why those branches matter (edge cases, validation, error handling)
3. Why the current tests fail to reach them
4. Which SPECIFIC test cases should be added

DO:
- Read the source code to understand the logic and locate the branches
- Compare against the existing tests to see what is missing
- Look for untested if/else arms, early returns and boundary validations
- Suggest specific test cases with inputs and expected outputs
- Prioritise by risk (CRITICAL > HIGH > MEDIUM > LOW)

DO NOT:
- Invent generic problems
- Suggest tests for code that is already fully covered
- Be vague ("add more tests")
- Ignore the existing tests you were given

RESPONSE STRUCTURE (JSON):
{{
  "analysis": "Overall assessment of the coverage state and the patterns found",
  "identifiedGaps": [
    {{
      "file": "file name",
      "lines": [line numbers of the uncovered branches],
      "description": "Specific description of the uncovered branch (e.g. 'else of if (x > 0) on \
line 45')",
      "codeSnippet": "relevant code excerpt"
    }}
  ],
  "prioritization": [
    {{
      "gap": {{"file": "file name", "lines": [45], "description": "...", "codeSnippet": "..."}},
      "priority": "CRITICAL|HIGH|MEDIUM|LOW",
      "reasoning": "Why this gap has this priority (error handling, edge cases, data \
corruption, security)",
      "suggestedTests": [
        "Specific test 1: input X should return Y, covering branch Z",
        "Specific test 2: when condition W holds, expect behaviour Q"
      ]
    }}
  ],
  "recommendations": [
    "Practical, actionable recommendations to improve coverage",
    "Refactoring suggestions where the code is hard to test"
  ]
}}

Be precise, technical and actionable. Every suggestion must be implementable immediately."""

_ANALYSIS_STEPS = """For EACH file above you MUST:

1. IDENTIFY THE SPECIFIC UNCOVERED BRANCHES
   - Find exactly which if/else, switch and ternary alternatives are not tested
   - Use the "Uncovered branches" list as a guide
   - Cite the line and branch type (e.g. "line 45: else of the if is not covered")

2. ANALYSE THE EXISTING TESTS
   - See what is ALREADY tested
   - Work out why the uncovered branches are never reached
   - Note the missing inputs and scenarios

3. SUGGEST SPECIFIC TESTS
   - Propose ONE specific test for each uncovered branch
   - Include the input, the expected output and the branch it covers
   - Be VERY specific, never generic

4. PRIORITISE BY RISK
   - CRITICAL: error handling, security, data corruption
   - HIGH: important validations, critical edge cases
   - MEDIUM: relevant alternative paths
   - LOW: optimisation or performance branches"""


def _fence_language(file_path: str) -> str:
    return _FENCE_LANGUAGES.get(PurePath(file_path).suffix.lower(), "javascript")


def _format_branch_details(file: UncoveredFile) -> str:
    if not file.detailed_branches:
        return "Detailed branch information not available"
    return "\n".join(
        f"- Line {b.line}: '{b.type}' - {len(b.uncovered_branches)} of {b.total_branches} "
        "branches not covered"
        for b in file.detailed_branches
    )


def _format_uncovered_lines(file: UncoveredFile) -> str:
    if not file.uncovered_lines:
        return "All lines are covered"
    sample = ", ".join(str(line) for line in file.uncovered_lines[:MAX_SAMPLE_LINES])
    more = "..." if len(file.uncovered_lines) > MAX_SAMPLE_LINES else ""
    return f"Uncovered lines: {sample}{more}"


def _format_file(index: int, file: UncoveredFile) -> str:
    language = _fence_language(file.file_path)
    branch_pct = f"{file.branch_coverage:.1f}%" if file.branch_coverage is not None else "N/A"
    source = file.source_code or "Source code not available"
    if file.test_code:
        tests = f"```{language}\n{file.test_code[:MAX_TEST_CODE_CHARS]}\n```"
    else:
        tests = "NO TEST FILE FOUND - this is a critical problem!"

    return (
        f"### File {index}: {PurePath(file.file_path).name}\n\n"
        f"Path: {file.file_path}\n"
        f"Branch coverage: {branch_pct} ({file.covered_branches}/{file.total_branches} "
        "branches covered)\n"
        f"{_format_uncovered_lines(file)}\n\n"
        f"Uncovered branches:\n{_format_branch_details(file)}\n\n"
        f"Full source code:\n```{language}\n{source}\n```\n\n"
        f"Existing tests:\n{tests}"
    )


class GapAnalysisPrompt:
    """Renders a coverage report into the gap-analysis conversation."""

    name = "gap_analysis"

    def system_instruction(self) -> str:
        return SYSTEM_INSTRUCTION

    def select_files(self, report: CoverageReport) -> list[UncoveredFile]:
        """The files that fit in one request, worst coverage first."""
        return report.uncovered_files[:MAX_FILES_PER_REQUEST]

    def build_sections(self, report: CoverageReport) -> list[PromptSection]:
        selected = self.select_files(report)
        overview = (
            f"Repository: {report.repository_name}\n"
            f"Line coverage: {report.coverage_percentage}%\n"
            f"Branch coverage: {report.branch_coverage_percentage}%\n"
            f"Total lines: {report.total_lines} ({report.covered_lines} covered)\n"
            f"Files with branch coverage < {BRANCH_COVERAGE_THRESHOLD:.0f}%: "
            f"{len(report.uncovered_files)}"
        )
        files = "\n\n".join(_format_file(idx, f) for idx, f in enumerate(selected, start=1))
        closing = (
            f"Analyse ONLY the {len(selected)} file(s) listed above. Do not invent problems.\n\n"
            "Answer now with the JSON object described in your instructions, and nothing else."
        )
        return [
            PromptSection(label="Branch Coverage Report", content=overview),
            PromptSection(label="Files", content=files),
            PromptSection(label="Instructions", content=_ANALYSIS_STEPS),
            PromptSection(label="Response", content=closing),
        ]

    def build_request(self, report: CoverageReport) -> str:
        """Render the user message for *report*."""
        return join_sections(self.build_sections(report))

    def render(self, report: CoverageReport) -> RenderedPrompt:
        return RenderedPrompt(
            messages=[
                LLMMessage(role="system", content=self.system_instruction()),
                LLMMessage(role="user", content=self.build_request(report)),
            ]
        )
