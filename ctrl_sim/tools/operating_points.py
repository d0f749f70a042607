import os
import time
from datetime import datetime
from concurrent.futures import ProcessPoolExecutor, as_completed
import numpy as np
from ctrl_sim.tools.find_vc import find_vc, run_case

# ─────────────────────────────────────────────────────────────────────

def parse_case(case_name: str):
    """
    Parse an operating-point identifier.

    - ``'0.45V'``: trailing-edge PWM command of 0.45 V
    - ``'1.0V/0.5V'``: CPM command of 1.0 V with a 0.5 V sensed-current valley
    - ``'D=0.45'``: search the command that yields a 0.45 duty cycle

    Returns
    -------
    tuple
        ``(kind, vc_or_duty, vs0)`` with kind 'vc' or 'duty'; vs0 is None
        when no sensed-current level was given.
    """
    name = case_name.strip()
    if name.upper().startswith("D="):
        duty = float(name[2:])
        if not 0 <= duty < 1:
            raise ValueError("Target duty must lie in [0, 1).")
        return "duty", duty, None
    if "/" in name:
        vc_str, vs_str = name.split("/")
        return "vc", float(vc_str.replace("V", "").strip()), float(vs_str.replace("V", "").strip())
    return "vc", float(name.replace("V", "").strip()), None


def create_comparison_table(test_cases: dict):
    """Creates a summary DataFrame and a formatted table from results."""
    import pandas as pd
    from tabulate import tabulate

    rows = {
        "Parameter": [
            "vc", "D", "D expected", "D1", "D2", "D low-side",
            "period", "dt_min", "dt_mean", "overlaps"
        ]
    }
    waves = {}
    req = {"time", "c", "c1", "c2", "gl", "gh", "ramp"}

    for case_name, results in test_cases.items():
        rows[case_name] = [
            f"{results.get('vc', 0.0):.4f} V",
            f"{results.get('D', np.nan):.4f}",
            f"{results.get('Dexpected', np.nan):.4f}",
            f"{results.get('D1', np.nan):.4f}",
            f"{results.get('D2', np.nan):.4f}",
            f"{results.get('DL', np.nan):.4f}",
            f"{results.get('period', np.nan)*1e6:.4f} us",
            f"{results.get('deadTimeMin', np.nan)*1e9:.2f} ns",
            f"{results.get('deadTimeMean', np.nan)*1e9:.2f} ns",
            f"{results.get('overlaps', 0)}",
        ]

        if req.issubset(results):
            waves[case_name] = {k: results[k] for k in req}

    df = pd.DataFrame(rows).set_index("Parameter")
    return tabulate(df, headers="keys", tablefmt="fancy_grid"), df, waves

# ─────────────────────────────────────────────────────────────────────

def process_case(case_name, base_params, SimCycles, TimeStep, tol, plot):
    """Parses the case string, sets up, times, and runs the simulation."""
    try:
        kind, value, vs0 = parse_case(case_name)
        config = 2 if vs0 is not None else base_params.get('config', 1)
        vs0 = vs0 or 0.0
        print(f"--> {case_name}: {kind}={value:.4f}, config={config}, "
              f"Cycles={SimCycles}, dt={TimeStep}")

        start_time = time.perf_counter()
        if kind == "duty":
            results, _ = find_vc(base_params, value, tol=tol, SimCycles=SimCycles,
                                 TimeStep=TimeStep, config=config, vs0=vs0, Full_Arr=plot)
        else:
            results = run_case(base_params, value, vs0, config, SimCycles, TimeStep,
                               Full_Arr=plot)
        duration = time.perf_counter() - start_time
        print(f"<-- finished {case_name} in {duration:.2f}s")

        return case_name, results

    except Exception as e:
        print(f"!! Skipping {case_name}: Invalid format or error during processing. ({e})")
        return None, None

# ─────────────────────────────────────────────────────────────────────

def plot_case_waveforms(case_name, waves, fsw, num_cycles_zoom=2,
                        output_dir="outputs/plots", plot_dpi=300,
                        file_format='pdf'):
    """Saves plots of the control-chain waveforms for a given simulation result."""
    import matplotlib.pyplot as plt

    req = ["time", "ramp", "c", "c1", "c2", "gl", "gh"]
    if not all(k in waves for k in req):
        print(f"Waveforms incomplete for {case_name}, skipping plot.")
        return
    t, ramp, c, c1, c2, gl, gh = (np.asarray(waves[k]) for k in req)
    if t.size < 2:
        print(f"Not enough data points for {case_name}, skipping plot.")
        return
    tus = t * 1e6
    zoom_mask = tus >= tus[-1] - num_cycles_zoom * 1e6 / fsw
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)
    fig.suptitle(f'Control chain {case_name} (fsw={fsw/1e3:.1f} kHz)')
    axes[0].plot(tus[zoom_mask], ramp[zoom_mask], color='purple', label="ramp")
    axes[0].set(title="Modulator ramp", ylabel="Voltage (V)")
    axes[0].legend(); axes[0].grid(True)
    axes[1].plot(tus[zoom_mask], c[zoom_mask], color='black', label="c")
    axes[1].plot(tus[zoom_mask], c1[zoom_mask], color='blue', linestyle='--', label="c1")
    axes[1].plot(tus[zoom_mask], c2[zoom_mask], color='red', linestyle=':', label="c2")
    axes[1].set(title="PWM and dead-time outputs", ylabel="Voltage (V)")
    axes[1].legend(loc='upper right'); axes[1].grid(True)
    axes[2].plot(tus[zoom_mask], gh[zoom_mask], color='blue', label="gh")
    axes[2].plot(tus[zoom_mask], gl[zoom_mask], color='red', label="gl")
    axes[2].set(title="Gate drives", xlabel="Time (us)", ylabel="Voltage (V)")
    axes[2].legend(loc='upper right'); axes[2].grid(True)
    fig.tight_layout(rect=[0, 0.03, 1, 0.95])
    os.makedirs(output_dir, exist_ok=True)
    safe_name = case_name.replace("/", "_vs_").replace("=", "")
    file_name = f"waves_{safe_name}.{file_format}"
    file_path = os.path.join(output_dir, file_name)
    fig.savefig(file_path, dpi=plot_dpi)
    plt.close(fig)
    print(f"Plot saved: {file_name}")

# ─────────────────────────────────────────────────────────────────────

def run_operating_points(desired_cases_identifiers, base_params,
                         SimCycles=4, TimeStep=10e-9,
                         plot=False, show_table=False, save_csv=False,
                         max_workers=None, tol=2e-3,
                         return_arrays=False):
    """
    Simulates a list of control-chain operating points IN PARALLEL and prints total runtime.
    """
    # Validate input
    if not isinstance(desired_cases_identifiers, (list, set, tuple)):
        print("Error: 'desired_cases_identifiers' must be a list, tuple or set.")
        return []
    identifiers = [c for c in desired_cases_identifiers if isinstance(c, str)]
    if not identifiers:
        print("Warning: No valid string identifiers found in the input list.")
        return []

    generate_full_arrays = plot or return_arrays
    test_cases = {}

    # --- Parallel execution with timing ---
    workers = max_workers or os.cpu_count() or 1
    print(f"\nRunning in PARALLEL with max_workers={workers}...")
    start_total = time.perf_counter()

    with ProcessPoolExecutor(max_workers=workers) as pool:
        futs = {
            pool.submit(
                process_case,
                c,
                base_params,
                SimCycles,
                TimeStep,
                tol,
                generate_full_arrays
            ): c for c in identifiers
        }

        for fut in as_completed(futs):
            name, data = fut.result()
            if name and data:
                test_cases[name] = data

    total_runtime = time.perf_counter() - start_total
    print(f"\nTotal simulation runtime (parallel): {total_runtime:.2f} seconds")

    if not test_cases:
        print("\nNo cases were successfully processed.")
        return []

    print(f"\n{len(test_cases)} cases were successfully processed.")

    # Build table (only if requested)
    df = None
    if show_table or save_csv:
        table, df, _ = create_comparison_table(test_cases)
        if show_table:
            print("\n" + "="*80)
            print("OPERATING POINT SUMMARY")
            print("="*80)
            print(table)
            print("="*80 + "\n")

    # Plots (only if requested)
    if plot:
        _, _, waves = create_comparison_table(test_cases)
        if waves:
            out_dir = os.path.join(os.curdir, "outputs", "plots")
            os.makedirs(out_dir, exist_ok=True)
            print(f"Saving plots to '{out_dir}'...")
            fsw = base_params.get('fs', 100e3)
            for cname, data in waves.items():
                plot_case_waveforms(cname, data, fsw, num_cycles_zoom=2, output_dir=out_dir)
        else:
            print("Plotting was requested, but no waveform data was generated.")

    # CSV (only if requested)
    if save_csv and df is not None and not df.empty:
        out_dir = os.path.join(os.curdir, "outputs")
        os.makedirs(out_dir, exist_ok=True)
        fname = f'operating_points_{datetime.now():%Y%m%d_%H%M%S}.csv'
        full_path = os.path.join(out_dir, fname)
        df.to_csv(full_path)
        print(f"CSV file saved to {full_path}")

    # Return compact list of results (order by case name for determinism)
    array_keys = {"time", "c", "c1", "c2", "gl", "gh", "ramp"}
    return [{"case": n, **{k: v for k, v in d.items()
                           if return_arrays or k not in array_keys}}
            for n, d in sorted(test_cases.items(), key=lambda x: x[0])]
