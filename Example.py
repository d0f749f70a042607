from ctrl_sim import ControlChain, simulate_behavioral, analyze, run_operating_points, find_vc

import matplotlib.pyplot as plt

params = {

    'fs': 100e3,
    'VM': 1.0,
    'Dmin': 0.0,
    'Dmax': 0.9,
    'Td': 100e-9,
    'Tdelay': 30e-9,
    'Vdrv': 12.0,
    'Va': 0.5,
    'Vs_pk': 1.0,
}


SimCycles = 4
TimeStep = 10e-9


#Example syntax for standalone function use
'''
chain = ControlChain.from_params(params, config=1)
results = simulate_behavioral(chain, params['fs'], TimeStep, SimCycles,
                              inputs={'vc': 0.45, 'Vdrv': 12.0, 'Vsw': 0.0})
metrics = analyze(results, params['fs'], TimeStep, SimCycles)
plt.plot(results['time'], results['c1'], results['time'], results['c2'])
plt.show()

results, vc = find_vc(params, Dtarget=0.3, config=1)
'''
cases = [
    '0.25V',
    '0.45V',
    '2.5V',
    '1.2V/0.2V',
    'D=0.30',
]


#run_operating_points syntax

if __name__ == "__main__":
    run_operating_points(cases, params, SimCycles, TimeStep, show_table=True)
