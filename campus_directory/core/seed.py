"""
Embedded, versioned seed data.

Used as the initial migration source and as the last-resort recovery
fallback. Never queried live.
"""

from dataclasses import dataclass, field
from typing import Dict, List

SEED_VERSION = "2024.1"
EMAIL_DOMAIN = "nisd.net"

_RECIPIENT_USERS = {
    "bernal": ["david.laboy", "Marla.Reynolds", "sally.maher", "monica.flores"],
    "briscoe": ["joe.bishop", "francesca.parker", "brigitte.rauschuber", "xavier.aguirre"],
    "connally": ["erica.robles", "monica.ramirez"],
    "folks": ["yvette.lopez", "miguel.trevino", "terry.precie", "angelica.perez",
              "norma.esparza", "james-1.garza", "keli.hall", "ann.devlin"],
    "garcia": ["mateo.macias", "anna.lopez", "julie.minnis", "mark.lopez", "lori.persyn"],
    "hobby": ["gregory.dylla", "marian.johnson", "lawrence.carranco", "jose.texidor",
              "victoria.denton"],
    "hobby magnet": ["jaime.heye"],
    "holmgreen": ["cheryl.parra", "frank.johnson"],
    "jefferson": ["monica.cabico", "Nicole.Gomez", "tiffany.watkins", "catherine.villela"],
    "jones": ["rudolph.arzola", "nicole.mcevoy", "erica.lashley", "javier.lazo", "aaron.logan"],
    "jones magnet": ["david.johnston"],
    "jordan": ["Shannon.Zavala", "juaquin.zavala", "erica.parra", "laurel.graham",
               "robert.ruiz", "anabel.romero"],
    "jordan magnet": ["jessica.marcha"],
    "luna": ["leti.chapa", "jennifer.cipollone", "amanda.king", "lisa.richard"],
    "neff": ["yvonne.correa", "theresa.heim", "laura-i.sanroman", "joseph.castellanos",
             "mackenzie.fulton", "adriana.aguero", "priscilla.vela", "sarah.tennery",
             "jessica.montalvo", "hayley.giorgio"],
    "pease": ["Lynda.Desutter", "jessica-1.barrera", "guadalupe.brister"],
    "rawlinson": ["jesus.villela", "david.rojas", "nicole.buentello"],
    "rayburn": ["robert.alvarado", "maricela.garza", "carol.zule", "micaela.welsh"],
    "ross": ["christina.lozano", "priscilla.sigala", "dolores.cardenas", "katherine.vela",
             "roxanne.romo", "cristina.castillo"],
    "rudder": ["catelyn.vasquez", "jeanette.navarro", "jason.padron", "adrian.hysten"],
    "stevenson": ["chaeleen.garcia", "anthony.allen01", "hilary.pilaczynski", "johanna.davenport"],
    "stinson": ["lourdes.medina", "louis.villarreal", "jeannette.rainey", "linda.boyett",
                "elda.garza", "maranda.luna", "alexis.lopez"],
    "straus": ["araceli.farias", "jose.gonzalez02", "leigh.davis"],
    "vale": ["jenna.bloom", "brenda.rayburg", "daniel.novosad", "mary.harrington"],
    "zachry": ["Richard.DeLaGarza", "randolph.neuenfeldt", "jennifer-a.garcia", "jimann.caliva",
               "veronica.poblano"],
    "zachry magnet": ["matthew.patty"],
    "test": ["reggie.ollendieck", "zina.gonzales"],
}

SEED_RECIPIENTS: Dict[str, List[str]] = {
    campus: [f"{user}@{EMAIL_DOMAIN}" for user in users]
    for campus, users in _RECIPIENT_USERS.items()
}

SEED_FOLDER_REFERENCES: Dict[str, str] = {
    "bernal": "1QlavZvp-8tvqiPF3zYQanZ9SQ7UhiJaE",
    "briscoe": "1JgHL75iSr5F1lgHLieZl0y_psuc7gp-N",
    "connally": "1cWPX_nOXb9yldONekm9Ba3Rsksl9yqKe",
    "folks": "1MZ9MCh1DmI9cJFWbr5BA-v1jJh5Dd1E9",
    "garcia": "1D8_8q9fcB6tn3fXX8xnlkGE8aro8fbDm",
    "hobby": "1u76TEIq5BbCNCG-i8Ta73VaY7NTOsK4x",
    "hobby magnet": "1YrvPC7m0eX128C0dR3u4RGNfU82MXOg2",
    "holmgreen": "1c8ufu7MvAsNwQAwx0IOwi4O1dNU1-7yo",
    "jefferson": "1LlQxIJBeCxV440nalwS5fjzu8_1dYvlx",
    "jones": "1jBxe9OFTTcones277XnehgvW4EnM4YQk",
    "jones magnet": "1oeMqPEr_cpstSWRa0LV-uodQwteQKRWn",
    "jordan": "1T90JGPgUu7DhfBBytxRrfgqkMBrkzOAN",
    "jordan magnet": "1BVECP6fsaqGXap1uEOchy5SW-6PsADM9",
    "luna": "10DdpBdHwp7bH5ph-pKvfbvG23tsi9ZMc",
    "neff": "1Sd7DrcgHjnAcuqR79DVmISnVn3Bzzfyn",
    "pease": "1tOusVf1SxNckZC5ro-dwBlk8-YpKUMuh",
    "rawlinson": "1p9IXf40oikwOrxSSmonwnBJ-dOJB7Ui6",
    "rayburn": "1DcP6LUpcT8wT9PEYgc4_dwk2mclWI9bp",
    "ross": "1KGyYAJF5Qf-Gt0oWvRRjH2Vw_DTARMcg",
    "rudder": "1a3PiBLrTtsMJkR6lthx86gUqd2_qeF-D",
    "stevenson": "1Y43jZCtjKFbF-I09lBS6wnr-Vbl0p_Cm",
    "stinson": "1pG4NIUveTfv46DvQoq0TD4uuwaXCLwkS",
    "straus": "15p9xqZoyikuVRk4ZVi7sUYYgoxL1PSew",
    "vale": "1QoRQNEt7_gWT3PC_DPnDFjlT1XKVQ3sN",
    "zachry": "1UZDcETdHG5eN9DSCdfKcV0wt72cVY7Ek",
    "zachry magnet": "1wMjhAx6wGOw5j-tu7-4wTNnH7V80pfPe",
    "test": "1nMJAEcGIh_QnhfS5gjCkKd6CtoA3r5cf",
}


@dataclass
class SeedData:
    version: str
    recipients: Dict[str, List[str]] = field(default_factory=dict)
    folder_references: Dict[str, str] = field(default_factory=dict)

    @property
    def campus_keys(self) -> List[str]:
        keys = list(self.recipients.keys())
        keys.extend(k for k in self.folder_references if k not in self.recipients)
        return keys

    def is_empty(self) -> bool:
        return not any(self.recipients.values())


DEFAULT_SEED = SeedData(
    version=SEED_VERSION,
    recipients=SEED_RECIPIENTS,
    folder_references=SEED_FOLDER_REFERENCES,
)

EMPTY_SEED = SeedData(version="empty")
