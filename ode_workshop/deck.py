"""
Slide deck assembly.

deck.yaml lists the sections in presentation order, each section points to markdown slide
files under slides/. The assembled deck is a single markdown file for Marp
(https://marp.app/), slides separated by '---'.

Directives understood inside slide files
    <!-- snippet: intro -->        source of lesson module intro, without its __main__ guard
    <!-- snippet: intro[run] -->   source of a single function of that lesson
    <!-- figure: callbacks.png --> image link into the figures directory
"""
import inspect
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List

import yaml

from ode_workshop.config import PACKAGE_DIR
from ode_workshop.lessons import get_lesson

logger = logging.getLogger(__name__)

DEFAULT_DECK_PATH = os.path.join(PACKAGE_DIR, "deck.yaml")
SLIDE_SEPARATOR = "\n\n---\n\n"
DIRECTIVE_PATTERN = re.compile(r"<!--\s*(snippet|figure)\s*:\s*([^\s\]\[]+)(?:\[(\w+)\])?\s*-->")
MAIN_GUARD_PATTERN = re.compile(r"\n+if __name__ == ['\"]__main__['\"]:.*\Z", re.DOTALL)


class DeckError(Exception):
    pass


@dataclass
class Section:
    title: str
    slides: List[str] = field(default_factory=list)
    lesson: str = None


@dataclass
class Deck:
    title: str
    sections: List[Section]
    theme: str = "default"
    base_dir: str = "."

    def slide_paths(self) -> List[str]:
        return [os.path.join(self.base_dir, "slides", slide) for section in self.sections
                for slide in section.slides]


def load_deck(path: str = DEFAULT_DECK_PATH) -> Deck:
    if not os.path.exists(path):
        raise DeckError(f"deck file {path} does not exist")
    with open(path, "r") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict) or "sections" not in raw:
        raise DeckError(f"deck file {path} must be a mapping with a 'sections' list")
    sections = []
    for i, raw_section in enumerate(raw["sections"]):
        if "title" not in raw_section:
            raise DeckError(f"section # {i} in {path} has no title")
        sections.append(Section(title=raw_section["title"], slides=list(raw_section.get("slides", [])),
                                lesson=raw_section.get("lesson", None)))
    return Deck(title=raw.get("title", "Workshop"), sections=sections, theme=raw.get("theme", "default"),
                base_dir=os.path.dirname(os.path.abspath(path)))


def lesson_source(lesson_name: str, function_name: str = None) -> str:
    try:
        lesson = get_lesson(lesson_name)
    except ValueError as e:
        raise DeckError(str(e)) from e
    if function_name is None:
        source = inspect.getsource(lesson)
        return MAIN_GUARD_PATTERN.sub("\n", source).strip()
    function = getattr(lesson, function_name, None)
    if function is None:
        raise DeckError(f"lesson {lesson_name} has no attribute {function_name}")
    return inspect.getsource(function).strip()


def render_directives(text: str, figures_dir: str) -> str:
    def replace(match):
        kind, target, qualifier = match.group(1), match.group(2), match.group(3)
        if kind == "snippet":
            return f"```python\n{lesson_source(target, qualifier)}\n```"
        if qualifier is not None:
            raise DeckError(f"figure directive does not take a qualifier : {match.group(0)}")
        return f"![{os.path.splitext(target)[0]}]({figures_dir}/{target})"

    return DIRECTIVE_PATTERN.sub(replace, text)


def render_deck(deck: Deck, figures_dir: str = "figures") -> str:
    front_matter = yaml.safe_dump({'marp': True, 'theme': deck.theme, 'paginate': True, 'title': deck.title},
                                  sort_keys=False).strip()
    slides = [f"# {deck.title}"]
    for section in deck.sections:
        slides.append(f"# {section.title}")
        for slide in section.slides:
            slide_path = os.path.join(deck.base_dir, "slides", slide)
            if not os.path.exists(slide_path):
                raise DeckError(f"slide {slide} of section '{section.title}' not found at {slide_path}")
            with open(slide_path, "r") as f:
                slides.append(render_directives(f.read().strip(), figures_dir))
        if section.lesson is not None:
            slides.append(f"## Exercise\n\nRun it yourself:\n\n```bash\npython -m ode_workshop run {section.lesson}\n```")
    return f"---\n{front_matter}\n---\n\n" + SLIDE_SEPARATOR.join(slides) + "\n"


def build_deck(deck_path: str = DEFAULT_DECK_PATH, output_path: str = "build/workshop.md",
               figures_dir: str = "figures") -> str:
    deck = load_deck(deck_path)
    content = render_deck(deck, figures_dir=figures_dir)
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(content)
    logger.info(f"deck '{deck.title}' with {len(deck.sections)} sections written to {output_path}")
    return output_path
