from ctrl_sim.tools.find_vc import find_vc
from ctrl_sim.tools.operating_points import run_operating_points
