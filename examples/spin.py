""" A stand-in for a render loop: the master spins a triangle, every process
    "draws" it by printing the angle. Try it on one machine with three
    terminals::

        DGR_MODE=slave DGR_SLAVE_LISTENPORT=5001 python spin.py
        dgr-relay 5000 127.0.0.1 5001
        DGR_MODE=master DGR_MASTER_DEST="127.0.0.1 5000" python spin.py

    Without any DGR settings it runs standalone.
"""

import logging
import time

import numpy

import dgr


def main():

    logging.basicConfig(level=logging.INFO)

    context = dgr.init()

    angle = numpy.zeros(1, dtype=numpy.float32)
    frame = numpy.zeros(1, dtype=numpy.uint64)
    start = time.time()

    while True:
        if context.is_master():
            # Only the master looks at the clock; slaves take its word.
            angle[0] = ((time.time() - start) * 90.0) % 360.0
            frame[0] += 1

        context.declare_or_sync('angle', angle)
        context.declare_or_sync('frame', frame)
        context.update()

        if context.is_master() == False and context.is_enabled() == False:
            print('master exited')
            break

        print('frame %6d  angle %6.1f' % (frame[0], angle[0]))

        if context.is_master() and frame[0] >= 600:
            break

        time.sleep(1 / 60.0)

    context.close()


if __name__ == '__main__':
    main()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
