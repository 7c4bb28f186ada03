"""Built-in preset fragments offered alongside live tracks and saved patterns."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

PRESETS: Mapping[str, str] = MappingProxyType(
    {
        "a": "s('bd,bass(4,8)').jux(rev).gain(0.8)",
        "b": "s('bd,bass(4,8)').jux(rev).gain(0.8).lpf(800).lpq(1).room(0.5).delay(0.3)",
        "c": "s('bd*2,hh(3,4),bass:[1 4](5,8,1)').jux(rev).attack(0.015).stack(s('~ sd')).gain(0.8)",
        "d": """note("[c eb g <f bb>](3,8,<0 1>)".sub(12))
.s("<sawtooth>/64")
.lpf(sine.range(300,2000).slow(16))
.lpa(0.005)
.lpd(perlin.range(.02,.2))
.lps(perlin.range(0,.5).slow(3))
.lpq(sine.range(2,10).slow(32))
.release(.5)
.lpenv(perlin.range(1,8).slow(2))
.ftype('24db')
.room(1)
.juxBy(.5,rev)
.sometimes(add(note(12)))
.stack(s("bd*2").bank('RolandTR909'))
.gain(.5).fast(2)""",
        "e": """s("hh*8").gain(".4!2 1 .4!2 1 .4 1").fast(2).layer(
  x => x.degrade().pan(0),
  x => x.undegrade().pan(1))""",
        "f": """n("<-4,0 5 2 1>*<2!3 4>")
.scale("<C F>/8:pentatonic")
.s("sine")
.penv("<.5 0 7 -2>*2").vib("4:.1")
.phaser(2).delay(.25).room(.3)
.size(4).fast(1.5)
.fm(3)
.fmdecay(.2)
.fmsustain(1)
.fmenv("<exp lin>")
.fm("<1 2 1.5 1.61>")
.lpf(tri.range(100, 5000).slow(2))
.lpf(tri.range(100, 5000).slow(2))
.vowel("<a e i <o u>>")
.vib("<.5 1 2 4 8 16>:8")
.room(1).roomsize(5).orbit(2)""",
        "g": """note("D#1!8").s("sine").penv(34).pdecay(.1).decay(.23).distort("8:.4")""",
        "h": """sound("bd*2,<white pink brown>*8")
.decay(.04).sustain(0).scope()""",
        "i": "note(\"c4 d4 e4 f4 g4 a4 b4 c5\").sound('sine').gain(0.8)",
        "j": """stack( n("<-4,0 5 2 1>*<2!3 4>")
.scale("<C F>/8:pentatonic")
.s("sine")
.penv("<.5 0 7 -2>*2").vib("4:.1")
.size(4).fast(1.5)
.room(1).roomsize(5).orbit(2))""",
        "k": (
            "stack(s('bd*2,jvbass*4(2,8),jvbass(8,8,1)').jux(rev), "
            "note('c1 eb1 g1 bb1').sound('sawtooth').lpf(sine.range(500,1000).slow(8)).lpq(5))"
            ".fm(sine.range(3,8).slow(100)).gain(0.8)"
        ),
        "l": 'n("0 1 4 2 0 6 3 2").sound("jazz")',
    }
)


__all__ = ["PRESETS"]
