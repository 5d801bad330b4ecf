"""Shell completion scripts generated from the argument parser."""

import argparse
from typing import Dict, List, Tuple

PROG = "worktree-hub"
SHELLS = ("bash", "zsh", "fish")


def _options(parser: argparse.ArgumentParser) -> List[str]:
    return sorted(
        flag for action in parser._actions for flag in action.option_strings if flag.startswith("--")
    )


def _commands(parser: argparse.ArgumentParser) -> Dict[str, Tuple[str, argparse.ArgumentParser]]:
    """Subcommand name -> (help text, subparser)."""
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            helps = {choice.dest: choice.help or "" for choice in action._choices_actions}
            return {name: (helps.get(name, ""), sub) for name, sub in action.choices.items()}
    return {}


def _bash(parser: argparse.ArgumentParser) -> str:
    commands = _commands(parser)
    top_level = " ".join(_options(parser) + list(commands))
    cases = []
    for name, (_, sub) in commands.items():
        words = " ".join(_options(sub) + sorted(_commands(sub)))
        cases.append(f'        {name}) opts="{words}" ;;')
    case_lines = "\n".join(cases)
    return f"""# bash completion for {PROG}
_worktree_hub() {{
    local cur="${{COMP_WORDS[COMP_CWORD]}}"
    local command="" word
    for word in "${{COMP_WORDS[@]:1:COMP_CWORD-1}}"; do
        case "$word" in -*) ;; *) command="$word"; break ;; esac
    done
    local opts
    case "$command" in
        "") opts="{top_level}" ;;
{case_lines}
        *) opts="" ;;
    esac
    COMPREPLY=($(compgen -W "$opts" -- "$cur"))
}}
complete -F _worktree_hub {PROG}
"""


def _zsh(parser: argparse.ArgumentParser) -> str:
    return f"""#compdef {PROG}
autoload -U +X bashcompinit && bashcompinit
{_bash(parser)}"""


def _fish(parser: argparse.ArgumentParser) -> str:
    lines = [f"# fish completion for {PROG}", f"complete -c {PROG} -f"]
    commands = _commands(parser)
    for flag in _options(parser):
        lines.append(f"complete -c {PROG} -n __fish_use_subcommand -l {flag[2:]}")
    for name, (help_text, sub) in commands.items():
        description = help_text.replace("'", "\\'")
        lines.append(f"complete -c {PROG} -n __fish_use_subcommand -a {name} -d '{description}'")
        for flag in _options(sub):
            lines.append(f"complete -c {PROG} -n '__fish_seen_subcommand_from {name}' -l {flag[2:]}")
        for action_name in sorted(_commands(sub)):
            lines.append(f"complete -c {PROG} -n '__fish_seen_subcommand_from {name}' -a {action_name}")
    return "\n".join(lines) + "\n"


def generate_completion(parser: argparse.ArgumentParser, shell: str) -> str:
    """The completion script for ``shell`` (one of ``SHELLS``)."""
    generators = {"bash": _bash, "zsh": _zsh, "fish": _fish}
    if shell not in generators:
        raise ValueError(f"unsupported shell '{shell}', expected one of {', '.join(SHELLS)}")
    return generators[shell](parser)
