"""
autonomy - Onboard Fault Management

    fdir : Triple modular redundancy voting, watchdog supervision and the
           FDIR manager whose operational flag gates the simulation loop.
"""
