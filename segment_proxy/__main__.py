from segment_proxy.cli import run

run()
