"""
Cmdweave help rendering.

render(describer, console=...) prints one level's help:

    usage: prog sub [-h] [-v] -c <value> <FILE> [argument2...] <command> [args]

    description

     commands
    ╭──────┬─────────────────╮
    │ name │ help            │
    ├──────┼─────────────────┤
    │ add  │ add two numbers │
    ╰──────┴─────────────────╯

    options:
      -h, --help          show this help and exit
      -v, --verbose       chatty output

    arguments:
      FILE                input file

Palette keys
- usage-label, program-name, description-section
- group-label, argument-description
- option-name, flag-name, metavar, greedy-metavar
- children-title, children-table, children, children-description
- panel-title

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry.
- When colorful is False, styling is suppressed.
"""
from collections import deque

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.containers import Lines
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .converters import Converters
from .declarations import Describer, Kind
from .faults import _palette

PALETTE = {
    "usage-label": "bold #00E6FF",
    "program-name": "bold #FF4D94",
    "description-section": "italic #A3A3A3",

    "group-label": "bold #FFFFFF",
    "argument-description": "#9CA3AF",

    "option-name": "bold #00E6FF",
    "flag-name": "bold #22C55E",
    "metavar": "bold #FFD600",
    "greedy-metavar": "bold italic #FFD600",

    "children-title": "bold #FFFFFF",
    "children-table": "#4B5563",
    "children": "bold #36C5F0",
    "children-description": "#9CA3AF",

    "panel-title": "bold #FF4D94",
}

# Column where option and argument descriptions start.
INDENT = 20


class _Layout:
    """
    Styled fragments for one describer, shared by the usage line and the sections.
    """

    def __init__(self, describer, colorful):
        self.describer = describer
        self.styler, self.text = _palette(PALETTE, colorful)

    @staticmethod
    def flag(declaration):
        return declaration.kind is Kind.OPTION and Converters.flag(declaration.type)

    def names(self, declaration, *, short=False):
        style = self.styler("flag-name" if self.flag(declaration) else "option-name")
        spellings = [name for name in (declaration.alias, declaration.name) if name]
        return Text(", ").join(self.text(name, style) for name in spellings[:1 if short else 2])

    def metavar(self, declaration):
        greedy = "..." if declaration.kind.list else ""
        if declaration.kind.positional:
            style = self.styler("greedy-metavar" if declaration.kind.list else "metavar")
            return self.text(declaration.metavar + greedy, style)
        return Text.assemble("<", self.text((declaration.metavar or "value") + greedy, self.styler("metavar")), ">")

    def help_flag(self, short=False):
        style = self.styler("flag-name")
        if short:
            return self.text("-h", style)
        return Text.assemble(self.text("-h", style), ", ", self.text("--help", style))

    def segments(self):
        yield Text.assemble("[", self.help_flag(short=True), "]")
        for declaration in self.describer.declarations:
            if declaration.hidden or declaration.kind is Kind.COMMAND:
                continue
            if declaration.kind.positional:
                segment = self.metavar(declaration)
                if declaration.required:
                    yield Text.assemble("<", segment, ">")
                else:
                    yield Text.assemble("[", segment, "]")
                continue
            segment = self.names(declaration, short=True)
            if not self.flag(declaration):
                segment = Text.assemble(segment, " ", self.metavar(declaration))
            yield segment if declaration.required else Text.assemble("[", segment, "]")
        if any(not command.hidden for command in self.describer.commands):
            yield Text("<command> [args]")

    def usage(self, width):
        usage = Text.assemble(
            self.text("usage", self.styler("usage-label")), ": ",
            self.text(self.describer.prog, self.styler("program-name")), " ",
        )
        offset = len(usage)

        # Greedy wrap with a hanging indent under the program path.
        segments = deque(self.segments())
        lines = Lines([segments.popleft()])
        while segments:
            segment = segments.popleft()
            if len(lines[-1]) + 1 + len(segment) > width - offset:
                lines.append(segment)
            else:
                lines[-1].append(Text(" ") + segment)
        usage.append(lines.pop(0))
        for line in lines:
            usage.append("\n").append(" " * offset).append(line)
        return usage.append("\n")

    def commands(self, width):
        commands = [command for command in self.describer.commands if not command.hidden]
        if not commands:
            return None
        table = Table(
            "name", "help",
            title=self.text("commands" if len(self.describer.path) == 1 else "subcommands", self.styler("children-title")),
            width=int(width * (2 / 3)),
            box=ROUNDED,
            style=self.styler("children-table"),
            header_style=self.styler("children-title"),
        )
        for command in commands:
            descr = command.descr or "run '%s %s --help' for details" % (self.describer.prog, command.name)
            table.add_row(
                self.text(command.name, self.styler("children")),
                self.text(descr, self.styler("children-description")),
            )
        return table

    def entry(self, console, width, column, descr):
        section = Text("  ").append(column)
        if not descr:
            return section
        if len(section) + 2 > INDENT:
            section.append("\n").append(" " * INDENT)
        else:
            section.append(" " * (INDENT - len(section)))
        wrapped = descr.wrap(console, max(width - INDENT, 1))
        section.append(wrapped[0])
        for line in wrapped[1:]:
            section.append("\n").append(" " * INDENT).append(line)
        return section

    def rows(self, declarations):
        for declaration in declarations:
            if declaration.hidden:
                continue
            if declaration.kind.positional:
                column = self.metavar(declaration)
            elif self.flag(declaration):
                column = self.names(declaration)
            else:
                column = Text.assemble(self.names(declaration), " ", self.metavar(declaration))
            descr = self.text(declaration.descr, self.styler("argument-description"))
            if declaration.required:
                descr = Text.assemble(descr, " " if descr else "", "(required)")
            yield column, descr

    def sections(self, console, width):
        reserved = (self.help_flag(), self.text("show this help and exit", self.styler("argument-description")))
        groups = (
            ("options", [reserved, *self.rows(self.describer.options)]),
            ("arguments", list(self.rows(self.describer.arguments))),
        )
        output = Text()
        for label, rows in groups:
            if not rows:
                continue
            if output:
                output.append("\n")
            output.append(self.text(label, self.styler("group-label"))).append(":\n")
            for column, descr in rows:
                output.append(self.entry(console, width, column, descr)).append("\n")
        return output


def render(describer, /, *, console=None, fancy=False, colorful=True):
    """
    Render the help of one level (a Describer) to console (stdout by default).
    """
    if not isinstance(describer, Describer):
        raise TypeError("render() argument must be a describer")
    console = Console() if console is None else console
    layout = _Layout(describer, colorful)
    width = console.width - 4 * fancy

    renders = [layout.usage(width)]
    if describer.description:
        renders.append(layout.text(describer.description, layout.styler("description-section")).append("\n"))
    if (table := layout.commands(width)) is not None:
        renders.append(table)
        renders.append(Text(""))
    sections = layout.sections(console, width)
    sections.rstrip()
    renders.append(sections)

    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=Text("[ %s HELP ]" % describer.prog.upper(), style=layout.styler("panel-title")),
            title_align="left",
        )
    console.print(renderable)


__all__ = (
    "render",
)
