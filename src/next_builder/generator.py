"""
Task-Based Generator

Breaks the app requirements into a small ordered task list, then asks the LLM
for the code of each task in turn. Each task's raw response is yielded as-is;
turning it into files is the Response Parser's job.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .errors import LLMError, ParseError
from .response_parser import load_json_payload


OFFLINE_KEYWORDS = ('offline', 'service worker', 'pwa')
ANIMATION_KEYWORDS = ('animation', 'transition')

TASK_LIST_PROMPT = """You are an expert Next.js developer. Analyze these requirements and break them down into specific implementation tasks.

REQUIREMENTS:
{requirements}

Create a task list for implementing this project. Each task should be:
- Specific and actionable
- Small enough to implement in one step
- Ordered by dependency (foundational tasks first)

Return ONLY a valid JSON object with this structure:
{{
  "tasks": [
    {{
      "id": "task-1",
      "name": "Create main layout component",
      "description": "Create the main layout with header and navigation",
      "dependencies": [],
      "files": ["src/app/layout.tsx", "src/components/Header.tsx"],
      "priority": 1
    }}
  ]
}}

Guidelines:
- Start with layout/structure tasks, then core features, then UI components
- Each task should generate 1-3 related files
- Shared state goes in src/context/<Name>Context.tsx exporting both <Name>Context and use<Name>Context
- The last task MUST update src/app/page.tsx to import and use the main components
- EXCLUDE: Do NOT create tasks for offline support, service workers, or PWA features
- EXCLUDE: Do NOT create separate accessibility or animation tasks
"""

TASK_CODE_PROMPT = """You are an expert Next.js developer. Generate code for this specific task.

TASK: {name}
DESCRIPTION: {description}
FILES TO CREATE/UPDATE: {files}

PROJECT REQUIREMENTS:
{requirements}

EXISTING FILES IN PROJECT:
{existing}

Generate ONLY the code for the files specified in this task.
- Use Next.js 14 with App Router, TypeScript and Tailwind CSS utility classes
- DO NOT modify postcss.config.mjs or package.json
- ALWAYS put 'use client' as the first line of any file that uses React hooks, event handlers or browser APIs
- Only import symbols that the imported module actually exports
- Do NOT import fonts from next/font/google; keep layout.tsx free of font imports
- Do NOT use external animation libraries; use Tailwind classes or CSS @keyframes

Return ONLY a valid JSON object with this structure:
{{
  "files": [
    {{
      "path": "src/app/layout.tsx",
      "content": "full file content here"
    }}
  ],
  "description": "Brief description of what was implemented"
}}
"""

SYSTEM_PROMPT = "You generate Next.js application code and reply with JSON only."


@dataclass
class GenerationTask:
    id: str
    name: str
    description: str = ""
    files: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    priority: int = 0

    @classmethod
    def from_dict(cls, data: Dict, index: int) -> "GenerationTask":
        try:
            priority = int(data.get('priority') or 0)
        except (TypeError, ValueError):
            priority = 0
        files = data.get('files') or []
        dependencies = data.get('dependencies') or []
        return cls(
            id=str(data.get('id') or f"task-{index}"),
            name=str(data.get('name') or f"Task {index}"),
            description=str(data.get('description') or ""),
            files=[str(f) for f in files] if isinstance(files, list) else [],
            dependencies=[str(d) for d in dependencies if d] if isinstance(dependencies, list) else [],
            priority=priority,
        )


def should_skip(task: GenerationTask) -> Optional[str]:
    """Return the reason a task is out of scope, or None to keep it."""
    name = task.name.lower()
    description = task.description.lower()

    if any(keyword in name or keyword in description for keyword in OFFLINE_KEYWORDS):
        return "offline/PWA"
    if ('accessibility' in name and 'component' not in name) or \
            ('accessibility' in description and 'features' in description):
        return "accessibility-specific"
    if any(keyword in name or keyword in description for keyword in ANIMATION_KEYWORDS):
        return "animation"
    return None


class TaskBasedGenerator:
    def __init__(self, llm_client):
        """
        Args:
            llm_client: Object with ``complete(messages) -> str``
        """
        self.llm_client = llm_client
        self.failed_tasks: List[GenerationTask] = []

    def _ask(self, prompt: str) -> str:
        return self.llm_client.complete([
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ])

    def create_task_list(self, requirements: str) -> List[GenerationTask]:
        """
        Ask the LLM to break the requirements into tasks.

        Raises:
            LLMError: no provider answered
            ParseError: the answer holds no usable task list
        """
        print("📋 Creating task list...")
        raw_text = self._ask(TASK_LIST_PROMPT.format(requirements=requirements))
        payload = load_json_payload(raw_text)
        tasks = payload.get('tasks') if isinstance(payload, dict) else None
        if not isinstance(tasks, list) or not tasks:
            raise ParseError("Task list response has no 'tasks' array", raw_text)

        return [GenerationTask.from_dict(task, index)
                for index, task in enumerate(tasks, 1) if isinstance(task, dict)]

    def plan(self, tasks: List[GenerationTask]) -> List[GenerationTask]:
        """Drop out-of-scope tasks and order the rest by priority."""
        kept = []
        for task in tasks:
            reason = should_skip(task)
            if reason:
                print(f"⏭️ Skipping {reason} task: {task.name}")
                continue
            kept.append(task)
        return sorted(kept, key=lambda task: task.priority)

    def generate_task_code(self, task: GenerationTask, requirements: str, existing_paths: List[str]) -> str:
        prompt = TASK_CODE_PROMPT.format(
            name=task.name,
            description=task.description,
            files=", ".join(task.files) or "as needed",
            requirements=requirements,
            existing=", ".join(existing_paths) or "None yet",
        )
        return self._ask(prompt)

    def generate(self, requirements: str) -> Iterator[str]:
        """
        Yield one raw LLM response per planned task, in order.

        A task whose LLM call fails is skipped and remembered in
        ``failed_tasks``; the session continues with the next task.
        """
        tasks = self.plan(self.create_task_list(requirements))
        print(f"✅ {len(tasks)} task(s) planned")

        existing_paths: List[str] = []
        for index, task in enumerate(tasks, 1):
            print(f"⚙️ Task {index}/{len(tasks)}: {task.name}")
            try:
                raw_text = self.generate_task_code(task, requirements, existing_paths)
            except LLMError as e:
                print(f"❌ Task {task.id} failed: {e}")
                self.failed_tasks.append(task)
                continue

            existing_paths.extend(path for path in task.files if path not in existing_paths)
            yield raw_text
