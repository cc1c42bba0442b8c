"""
timing.py - Slide animation timing and transition XML.

python-pptx has no API for either, so the PresentationML is written
directly: click-triggered groups in the slide's main sequence, where
an effect may start with the previous one, and an optional
``<p:transition>`` element.
"""

from types import MappingProxyType
from typing import Optional

from pptx.oxml import parse_xml
from pptx.oxml.ns import nsdecls, qn

from .model import AnimationSpec

# (shape id, effect, starts with the previous effect)
Effect = tuple[int, AnimationSpec, bool]

PRESET_CLASSES = MappingProxyType({"entrance": "entr", "emphasis": "emph", "exit": "exit"})

# (category, archetype) → PowerPoint preset id
PRESET_IDS = MappingProxyType(
    {
        ("entrance", "Appear"): 1,
        ("entrance", "Fly"): 2,
        ("entrance", "Fade"): 10,
        ("entrance", "Wipe"): 22,
        ("entrance", "Bounce"): 26,
        ("entrance", "Float"): 42,
        ("entrance", "Spin"): 49,
        ("entrance", "Zoom"): 53,
        ("entrance", "Flip"): 45,
        ("emphasis", "Grow"): 6,
        ("emphasis", "Spin"): 8,
        ("emphasis", "Pulse"): 26,
        ("emphasis", "Teeter"): 32,
        ("emphasis", "Bounce"): 26,
        ("emphasis", "Shake"): 32,
        ("emphasis", "Swing"): 32,
        ("emphasis", "Wobble"): 32,
        ("emphasis", "Flash"): 26,
        ("exit", "Fly"): 2,
        ("exit", "Fade"): 10,
        ("exit", "Bounce"): 26,
        ("exit", "Float"): 42,
        ("exit", "Spin"): 49,
        ("exit", "Zoom"): 53,
    }
)

# Fly subtypes name the side the shape comes from.
FLY_SUBTYPES = MappingProxyType({"up": 4, "down": 1, "left": 2, "right": 8})

# (exit, zoom subtype) → scale from, to; 100000 is full size.
ZOOM_SCALES = MappingProxyType(
    {
        (False, "In"): (0, 100000),
        (False, "Out"): (200000, 100000),
        (True, "In"): (100000, 200000),
        (True, "Out"): (100000, 0),
    }
)

# Off-slide start positions for a shape moving in the given direction.
FLY_PATHS = MappingProxyType(
    {
        "up": ("ppt_y", "1+#ppt_h/2", "#ppt_y"),
        "down": ("ppt_y", "0-#ppt_h/2", "#ppt_y"),
        "left": ("ppt_x", "1+#ppt_w/2", "#ppt_x"),
        "right": ("ppt_x", "0-#ppt_w/2", "#ppt_x"),
    }
)
FLOAT_PATHS = MappingProxyType(
    {
        "up": ("ppt_y", "#ppt_y+0.1", "#ppt_y"),
        "down": ("ppt_y", "#ppt_y-0.1", "#ppt_y"),
        "left": ("ppt_x", "#ppt_x+0.1", "#ppt_x"),
        "right": ("ppt_x", "#ppt_x-0.1", "#ppt_x"),
    }
)

TRANSITION_XML = MappingProxyType(
    {
        "fade": "<p:fade/>",
        "push": '<p:push dir="u"/>',
        "cover": '<p:cover dir="l"/>',
        "wipe": '<p:wipe dir="r"/>',
        "split": '<p:split orient="horz" dir="out"/>',
        "random": "<p:random/>",
        "zoom": '<p:zoom dir="in"/>',
        "blinds": '<p:blinds dir="horz"/>',
        "checker": '<p:checker dir="horz"/>',
        "circle": "<p:circle/>",
        "dissolve": "<p:dissolve/>",
    }
)

FULL_TURN = 21600000  # 360 degrees in 60000ths


class _Ids:
    def __init__(self, start: int = 1):
        self.value = start - 1

    def next(self) -> int:
        self.value += 1
        return self.value


def _easing_attrs(easing: str) -> str:
    if easing == "easeIn":
        return ' accel="50000"'
    if easing == "easeOut":
        return ' decel="50000"'
    if easing == "easeInOut":
        return ' accel="25000" decel="25000"'
    return ""


def _repeat_attr(iterations: int) -> str:
    if iterations < 0:
        return ' repeatCount="indefinite"'
    if iterations > 1:
        return f' repeatCount="{iterations * 1000}"'
    return ""


def _target(spid: int) -> str:
    return f'<p:tgtEl><p:spTgt spid="{spid}"/></p:tgtEl>'


def _visibility(ids: _Ids, spid: int, value: str, delay: int = 0) -> str:
    return (
        f'<p:set><p:cBhvr><p:cTn id="{ids.next()}" dur="1" fill="hold">'
        f'<p:stCondLst><p:cond delay="{delay}"/></p:stCondLst></p:cTn>'
        f"{_target(spid)}<p:attrNameLst><p:attrName>style.visibility</p:attrName>"
        f'</p:attrNameLst></p:cBhvr><p:to><p:strVal val="{value}"/></p:to></p:set>'
    )


def _fade(ids: _Ids, spid: int, dur: int, out: bool = False) -> str:
    return (
        f'<p:animEffect transition="{"out" if out else "in"}" filter="fade">'
        f'<p:cBhvr><p:cTn id="{ids.next()}" dur="{dur}"/>{_target(spid)}</p:cBhvr>'
        "</p:animEffect>"
    )


def _wipe(ids: _Ids, spid: int, dur: int, out: bool = False) -> str:
    return (
        f'<p:animEffect transition="{"out" if out else "in"}" filter="wipe(down)">'
        f'<p:cBhvr><p:cTn id="{ids.next()}" dur="{dur}"/>{_target(spid)}</p:cBhvr>'
        "</p:animEffect>"
    )


def _motion(ids: _Ids, spid: int, dur: int, path: tuple[str, str, str], out: bool = False) -> str:
    attr, start, end = path
    if out:
        start, end = end, start
    return (
        '<p:anim calcmode="lin" valueType="num"><p:cBhvr additive="base">'
        f'<p:cTn id="{ids.next()}" dur="{dur}" fill="hold"/>{_target(spid)}'
        f"<p:attrNameLst><p:attrName>{attr}</p:attrName></p:attrNameLst></p:cBhvr>"
        f'<p:tavLst><p:tav tm="0"><p:val><p:strVal val="{start}"/></p:val></p:tav>'
        f'<p:tav tm="100000"><p:val><p:strVal val="{end}"/></p:val></p:tav></p:tavLst>'
        "</p:anim>"
    )


def _scale(ids: _Ids, spid: int, dur: int, frm: int, to: int) -> str:
    return (
        f'<p:animScale><p:cBhvr><p:cTn id="{ids.next()}" dur="{dur}" fill="hold"/>'
        f'{_target(spid)}</p:cBhvr><p:from x="{frm}" y="{frm}"/>'
        f'<p:to x="{to}" y="{to}"/></p:animScale>'
    )


def _pulse(ids: _Ids, spid: int, dur: int) -> str:
    return (
        f'<p:animScale><p:cBhvr><p:cTn id="{ids.next()}" dur="{max(1, dur // 2)}" '
        f'autoRev="1" fill="hold"/>{_target(spid)}</p:cBhvr>'
        '<p:by x="105000" y="105000"/></p:animScale>'
    )


def _rotate(ids: _Ids, spid: int, dur: int, by: int = FULL_TURN, auto_reverse: bool = False) -> str:
    rev = ' autoRev="1"' if auto_reverse else ""
    return (
        f'<p:animRot by="{by}"><p:cBhvr><p:cTn id="{ids.next()}" dur="{dur}"{rev} fill="hold"/>'
        f"{_target(spid)}<p:attrNameLst><p:attrName>r</p:attrName></p:attrNameLst>"
        "</p:cBhvr></p:animRot>"
    )


def behaviours(spec: AnimationSpec, spid: int, ids: _Ids) -> str:
    """Animation behaviour elements for one effect."""
    dur = max(1, int(round(spec.duration_ms)))
    direction = spec.direction or "up"
    archetype = spec.archetype

    if spec.category == "emphasis":
        if archetype == "Spin":
            return _rotate(ids, spid, dur)
        if archetype in ("Teeter", "Swing", "Wobble", "Shake"):
            return _rotate(ids, spid, max(1, dur // 4), by=FULL_TURN // 90, auto_reverse=True)
        return _pulse(ids, spid, dur)

    out = spec.category == "exit"
    parts = [] if out else [_visibility(ids, spid, "visible")]
    if archetype == "Fly":
        parts.append(_motion(ids, spid, dur, FLY_PATHS.get(direction, FLY_PATHS["up"]), out))
    elif archetype == "Float":
        parts.append(_motion(ids, spid, dur, FLOAT_PATHS.get(direction, FLOAT_PATHS["up"]), out))
        parts.append(_fade(ids, spid, dur, out))
    elif archetype == "Zoom":
        default = ZOOM_SCALES[(out, "Out" if out else "In")]
        start, end = ZOOM_SCALES.get((out, spec.subtype), default)
        parts.append(_scale(ids, spid, dur, start, end))
        parts.append(_fade(ids, spid, dur, out))
    elif archetype == "Spin":
        parts.append(_rotate(ids, spid, dur))
        parts.append(_fade(ids, spid, dur, out))
    elif archetype == "Wipe":
        parts.append(_wipe(ids, spid, dur, out))
    elif archetype != "Appear":
        parts.append(_fade(ids, spid, dur, out))
    if out:
        parts.append(_visibility(ids, spid, "hidden", delay=max(0, dur - 1)))
    return "".join(parts)


def _effect_par(spec: AnimationSpec, spid: int, ids: _Ids, group_id: int, node_type: str) -> str:
    preset_class = PRESET_CLASSES.get(spec.category, "entr")
    preset_id = PRESET_IDS.get((spec.category, spec.archetype), 10)
    subtype = FLY_SUBTYPES.get(spec.direction or "", 0) if spec.archetype in ("Fly", "Float") else 0
    effect = ids.next()
    body = behaviours(spec, spid, ids)
    return (
        f'<p:par><p:cTn id="{effect}" presetID="{preset_id}" presetClass="{preset_class}" '
        f'presetSubtype="{subtype}" fill="hold" grpId="{group_id}" nodeType="{node_type}"'
        f"{_easing_attrs(spec.easing)}{_repeat_attr(spec.iterations)}>"
        f'<p:stCondLst><p:cond delay="{max(0, int(round(spec.delay_ms)))}"/></p:stCondLst>'
        f"<p:childTnLst>{body}</p:childTnLst></p:cTn></p:par>"
    )


def effect_xml(members: list[tuple[int, AnimationSpec]], ids: _Ids, group_id: int) -> str:
    """One click group: outer par (click), inner par, then one effect par per
    member. The first member starts on the click, the rest with it."""
    outer = ids.next()
    inner = ids.next()
    pars = "".join(
        _effect_par(spec, spid, ids, group_id + offset, "clickEffect" if offset == 0 else "withEffect")
        for offset, (spid, spec) in enumerate(members)
    )
    return (
        f'<p:par><p:cTn id="{outer}" fill="hold">'
        '<p:stCondLst><p:cond delay="indefinite"/></p:stCondLst><p:childTnLst>'
        f'<p:par><p:cTn id="{inner}" fill="hold">'
        '<p:stCondLst><p:cond delay="0"/></p:stCondLst><p:childTnLst>'
        f"{pars}"
        "</p:childTnLst></p:cTn></p:par>"
        "</p:childTnLst></p:cTn></p:par>"
    )


def click_groups(effects: list[Effect]) -> list[list[tuple[int, AnimationSpec]]]:
    """Split (shape id, effect, with previous) triples into click groups."""
    groups: list[list[tuple[int, AnimationSpec]]] = []
    for spid, spec, with_previous in effects:
        if with_previous and groups:
            groups[-1].append((spid, spec))
        else:
            groups.append([(spid, spec)])
    return groups


def timing_xml(effects: list[Effect]) -> str:
    """Complete ``<p:timing>`` element for (shape id, effect, with previous) triples."""
    ids = _Ids()
    root = ids.next()
    main = ids.next()
    parts = []
    group_id = 0
    for members in click_groups(effects):
        parts.append(effect_xml(members, ids, group_id))
        group_id += len(members)
    groups = "".join(parts)
    return (
        f"<p:timing {nsdecls('p')}><p:tnLst><p:par>"
        f'<p:cTn id="{root}" dur="indefinite" restart="never" nodeType="tmRoot"><p:childTnLst>'
        '<p:seq concurrent="1" nextAc="seek">'
        f'<p:cTn id="{main}" dur="indefinite" nodeType="mainSeq"><p:childTnLst>{groups}'
        "</p:childTnLst></p:cTn>"
        '<p:prevCondLst><p:cond evt="onPrev" delay="0"><p:tgtEl><p:sldTgt/></p:tgtEl></p:cond></p:prevCondLst>'
        '<p:nextCondLst><p:cond evt="onNext" delay="0"><p:tgtEl><p:sldTgt/></p:tgtEl></p:cond></p:nextCondLst>'
        "</p:seq></p:childTnLst></p:cTn></p:par></p:tnLst>"
        "</p:timing>"
    )


def _remove(sld, tag: str):
    existing = sld.find(qn(tag))
    if existing is not None:
        sld.remove(existing)


def _anchor(sld):
    """Element after which transition/timing go (clrMapOvr, else cSld)."""
    anchor = sld.find(qn("p:clrMapOvr"))
    return anchor if anchor is not None else sld.find(qn("p:cSld"))


def apply_timing(slide, effects: list[Effect]):
    """Write the slide's animation timing; replaces any existing one."""
    sld = slide._element
    _remove(sld, "p:timing")
    if not effects:
        return
    timing = parse_xml(timing_xml(effects))
    transition = sld.find(qn("p:transition"))
    (transition if transition is not None else _anchor(sld)).addnext(timing)


def transition_xml(name: str, speed: str = "med") -> Optional[str]:
    inner = TRANSITION_XML.get(name)
    if inner is None:
        return None
    return f'<p:transition {nsdecls("p")} spd="{speed}">{inner}</p:transition>'


def apply_transition(slide, name: Optional[str]):
    """Set the slide transition; it must precede ``<p:timing>``."""
    if not name:
        return
    xml = transition_xml(name)
    if xml is None:
        return
    sld = slide._element
    _remove(sld, "p:transition")
    _anchor(sld).addnext(parse_xml(xml))
